import argparse
import json
import os
import sys
import logging
import time
from typing import Callable, List, Optional

from playlist_converter.application.pipeline import ConversionPipeline
from playlist_converter.crosscutting.config import AppConfig, ConfigError, load_config
from playlist_converter.crosscutting.logging import setup_logging
from playlist_converter.crosscutting.reporting import result_to_json
from playlist_converter.domain.entities import Identity
from playlist_converter.domain.errors import ConversionError
from playlist_converter.interfaces.http import build_auth_client, build_pipeline


logger = logging.getLogger(__name__)


class CLI:
    """Command Line Interface for the playlist converter."""

    def __init__(self,
                 config_loader: Callable[[], AppConfig] = load_config,
                 pipeline_factory: Optional[Callable[[AppConfig], ConversionPipeline]] = None):
        """Initialize CLI.

        Args:
            config_loader: Loads the application configuration
            pipeline_factory: Builds the pipeline from configuration
        """
        self.parser = self._create_parser()
        self.config_loader = config_loader
        self.pipeline_factory = pipeline_factory or self._default_pipeline
        self._start_time = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='playlist-converter',
            description='Convert a YouTube playlist into a Spotify playlist'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        convert_parser = subparsers.add_parser('convert', help='Convert a playlist')
        convert_parser.add_argument(
            '--url',
            required=True,
            help='Source playlist URL (must contain a list= parameter)'
        )
        convert_parser.add_argument(
            '--name',
            required=True,
            help='Name of the Spotify playlist to create'
        )
        convert_parser.add_argument(
            '--access-token',
            default=None,
            help='Spotify access token (default: SPOTIFY_ACCESS_TOKEN)'
        )
        convert_parser.add_argument(
            '--output',
            default=None,
            help='Write the JSON report to this file instead of stdout'
        )
        convert_parser.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            default=None,
            help='Set logging level (default: LOG_LEVEL or INFO)'
        )

        login_parser = subparsers.add_parser('login', help='Print the Spotify authorization URL')
        login_parser.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            default=None,
            help='Set logging level (default: LOG_LEVEL or INFO)'
        )

        return parser

    def _default_pipeline(self, config: AppConfig) -> ConversionPipeline:
        auth_client = build_auth_client(config) if not config.missing_spotify() else None
        return build_pipeline(config, auth_client)

    def _get_access_token(self, args: argparse.Namespace) -> Optional[str]:
        value = args.access_token or os.getenv('SPOTIFY_ACCESS_TOKEN')
        if value is None or not str(value).strip():
            return None
        return value.strip()

    def _convert(self, args: argparse.Namespace, config: AppConfig) -> int:
        """Run one conversion and emit its report."""
        config.require_youtube()
        pipeline = self.pipeline_factory(config)
        token = self._get_access_token(args)
        identity = Identity(access_token=token) if token else None

        try:
            result = pipeline.convert(args.url, args.name, identity)
        except ConversionError as e:
            logger.error(f"Conversion failed: {e}")
            print(f"Error ({e.code}): {e}", file=sys.stderr)
            return 1

        report = json.dumps(result_to_json(result), indent=2, ensure_ascii=False)
        if args.output:
            with open(args.output, 'w', encoding='utf-8') as f:
                f.write(report)
            logger.info(f"Report saved to: {args.output}")
        else:
            print(report)

        summary = result.summary
        print(
            f"Created {result.destination_playlist_url}: {summary.matched}/{summary.total} tracks matched"
            + (f", {len(result.batch_failures)} batch(es) failed to add" if result.partial else ""),
            file=sys.stderr
        )
        return 0

    def _login(self, config: AppConfig) -> int:
        pipeline = self.pipeline_factory(config)
        try:
            print(pipeline.initiate_login())
        except ConversionError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        return 0

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run the CLI and return the process exit code."""
        self._start_time = time.time()
        args = self.parser.parse_args(argv)

        if not args.command:
            self.parser.print_help()
            return 1

        try:
            config = self.config_loader()
        except ConfigError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return 1

        setup_logging(args.log_level or config.log_level, json_format=config.json_logs)

        try:
            if args.command == 'convert':
                return self._convert(args, config)
            if args.command == 'login':
                return self._login(config)
            self.parser.print_help()
            return 1
        except KeyboardInterrupt:
            logger.warning("Operation cancelled by user")
            return 130
        except ConfigError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return 1
        finally:
            logger.debug(f"CLI execution time: {time.time() - self._start_time:.2f}s")


def main():
    """Main entry point."""
    sys.exit(CLI().run())


if __name__ == '__main__':
    main()

import logging
from datetime import datetime
from typing import Callable, Optional
from urllib.parse import urlencode

from flask import Flask, request, jsonify, redirect

from playlist_converter.application.pipeline import ConversionPipeline
from playlist_converter.application.source_reader import SourceReader
from playlist_converter.crosscutting.config import AppConfig, load_config
from playlist_converter.crosscutting.logging import setup_logging
from playlist_converter.crosscutting.reporting import result_to_json
from playlist_converter.domain.entities import Identity
from playlist_converter.domain.errors import AuthError, ConversionError, InvalidInputError
from playlist_converter.domain.ports import AuthClient

VERSION = "0.1.0"


def build_pipeline(config: AppConfig, auth_client: Optional[AuthClient] = None) -> ConversionPipeline:
    """Wire the production pipeline: YouTube source, Spotify destination."""
    from playlist_converter.infrastructure.providers.spotify import SpotifyDestinationClient
    from playlist_converter.infrastructure.providers.youtube import YouTubeSourceClient

    return ConversionPipeline(
        source_reader=SourceReader(YouTubeSourceClient(config.youtube_api_key)),
        destination_factory=SpotifyDestinationClient,
        auth_client=auth_client,
        market=config.market,
        search_limit=config.search_limit,
        pace_interval_sec=config.pace_interval_sec,
        batch_retries=config.batch_retries,
    )


def build_auth_client(config: AppConfig) -> AuthClient:
    from playlist_converter.infrastructure.providers.spotify import SpotifyAuthClient

    config.require_spotify()
    return SpotifyAuthClient(
        client_id=config.spotify_client_id,
        client_secret=config.spotify_client_secret,
        redirect_uri=config.spotify_redirect_uri,
    )


class HTTPServer:
    """HTTP interface for the playlist converter: login, OAuth callback and conversion."""

    def __init__(self,
                 config: Optional[AppConfig] = None,
                 pipeline: Optional[ConversionPipeline] = None,
                 auth_client: Optional[AuthClient] = None,
                 host: str = 'localhost',
                 debug: bool = False):
        """Initialize HTTP server.

        Args:
            config: Application configuration; loaded from the environment when omitted
            pipeline: Conversion pipeline; built lazily from `config` when omitted
            auth_client: OAuth client; built lazily from `config` when omitted
            host: Interface to bind
            debug: Flask debug mode
        """
        self.config = config or load_config()
        self.host = host
        self.port = self.config.port
        self.debug = debug
        self.app = Flask(__name__)
        self.logger = logging.getLogger(__name__)
        self.version = VERSION

        self._auth_client = auth_client
        self._pipeline = pipeline

        self._setup_routes()

    @property
    def auth_client(self) -> AuthClient:
        if self._auth_client is None:
            self._auth_client = build_auth_client(self.config)
        return self._auth_client

    @property
    def pipeline(self) -> ConversionPipeline:
        if self._pipeline is None:
            auth_client = self._auth_client
            if auth_client is None and not self.config.missing_spotify():
                auth_client = self.auth_client
            self._pipeline = build_pipeline(self.config, auth_client)
        return self._pipeline

    def _frontend_redirect(self, path: str, params: Optional[dict] = None):
        url = f"{self.config.frontend_url}{path}"
        if params:
            url = f"{url}?{urlencode(params)}"
        return redirect(url)

    def _json_payload(self) -> dict:
        """Return the JSON request body, or an empty dict when it is missing or not an object."""
        payload = request.get_json(silent=True)
        return payload if isinstance(payload, dict) else {}

    def _error_response(self, error: ConversionError):
        return jsonify({
            'error': str(error),
            'code': error.code,
        }), error.http_status

    def _setup_routes(self) -> None:
        """Setup Flask routes."""

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'version': self.version,
                'timestamp': datetime.now().isoformat()
            }), 200

        @self.app.route('/login', methods=['GET'])
        def login():
            """Return the Spotify authorization URL."""
            self.logger.info("Login request received")
            try:
                return jsonify({'url': self.pipeline.initiate_login()}), 200
            except Exception as e:
                self.logger.error(f"Failed to build login URL: {e}")
                return jsonify({
                    'error': 'Spotify login is not configured',
                    'details': str(e)
                }), 500

        @self.app.route('/callback', methods=['GET'])
        def oauth_callback():
            """OAuth callback endpoint: exchange the code and hand tokens to the frontend."""
            code = request.args.get('code')
            error = request.args.get('error')

            if error or not code:
                self.logger.error(f"OAuth callback without code: {error or 'missing code'}")
                return self._frontend_redirect('/error')

            try:
                tokens = self.auth_client.exchange(code)
            except Exception as e:
                self.logger.error(f"OAuth callback error: {e}")
                return self._frontend_redirect('/error')

            self.logger.info(f"Authentication successful for user {tokens.user_id}")
            return self._frontend_redirect('/callback', {
                'accessToken': tokens.access_token,
                'refreshToken': tokens.refresh_token,
                'userId': tokens.user_id,
                'displayName': tokens.display_name or '',
            })

        @self.app.route('/refresh', methods=['POST'])
        def refresh_token():
            """Trade a refresh token for a new access token."""
            payload = self._json_payload()
            token = payload.get('refreshToken')
            if not isinstance(token, str) or not token.strip():
                return self._error_response(InvalidInputError("Please provide a refresh token"))
            try:
                return jsonify({'accessToken': self.auth_client.refresh(token.strip())}), 200
            except AuthError as e:
                return self._error_response(e)

        @self.app.route('/convert', methods=['POST'])
        def convert():
            """Convert a YouTube playlist into a new Spotify playlist."""
            payload = self._json_payload()
            for field_name in ('url', 'name', 'accessToken', 'userId'):
                value = payload.get(field_name)
                if value is not None and not isinstance(value, str):
                    return self._error_response(InvalidInputError(f"'{field_name}' must be a string"))

            url = payload.get('url') or ''
            name = payload.get('name') or ''
            access_token = payload.get('accessToken')
            self.logger.info(f"Received conversion request for {url!r} as {name!r}")

            identity = Identity(access_token=access_token, user_id=payload.get('userId')) if access_token else None

            try:
                result = self.pipeline.convert(url, name, identity)
            except ConversionError as e:
                return self._error_response(e)
            except Exception as e:
                self.logger.exception(f"Conversion error: {e}")
                return jsonify({
                    'error': str(e) or 'An error occurred while converting the playlist.',
                    'code': 'internal_error',
                }), 500

            return jsonify(result_to_json(result)), 200

        @self.app.route('/', methods=['GET'])
        def root():
            """Root endpoint with basic info."""
            return jsonify({
                'service': 'Playlist Converter HTTP Interface',
                'version': self.version,
                'endpoints': {
                    'health': '/health',
                    'login': '/login',
                    'oauth_callback': '/callback',
                    'refresh': '/refresh',
                    'convert': '/convert'
                }
            }), 200

    def run(self) -> None:
        """Run the HTTP server."""
        self.logger.info(f"Starting Playlist Converter HTTP server on {self.host}:{self.port}")
        self.logger.info(f"Configuration: {self.config.summary()}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug
        )


def create_app(config: Optional[AppConfig] = None, **kwargs) -> Flask:
    """Create the Flask app."""
    server = HTTPServer(config=config, **kwargs)
    return server.app


def main(config_loader: Callable[[], AppConfig] = load_config) -> None:
    config = config_loader()
    setup_logging(config.log_level, json_format=config.json_logs)
    config.require_spotify()
    config.require_youtube()
    HTTPServer(config=config, host='0.0.0.0').run()


if __name__ == '__main__':
    main()

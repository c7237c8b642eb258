import time
import uuid
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from playlist_converter.application.matching import CandidateMatcher
from playlist_converter.application.pacing import RatePacer
from playlist_converter.application.playlist_builder import BuildResult, PlaylistBuilder
from playlist_converter.application.source_reader import SourceReader
from playlist_converter.crosscutting.logging import (
    CorrelationContext, log_conversion_complete, log_conversion_start, set_stage,
)
from playlist_converter.crosscutting.reporting import ConversionMetrics
from playlist_converter.domain.entities import (
    ConversionResult, ConversionSummary, Identity, TrackDescriptor, TrackOutcome, UserProfile,
)
from playlist_converter.domain.errors import (
    ConversionError, InvalidInputError, PlaylistCreateError, SearchTransportError,
    UnauthenticatedError, UnsupportedDirectionError, UnsupportedUrlError,
)
from playlist_converter.domain.ports import AuthClient, DestinationPlatformClient
from playlist_converter.domain.urls import Platform, classify_url


logger = logging.getLogger(__name__)


class ConversionStage(str, Enum):
    """Stages of a single conversion run."""

    IDLE = "idle"
    VALIDATING = "validating"
    FETCHING_SOURCE = "fetching_source"
    MATCHING = "matching"
    BUILDING_DESTINATION = "building_destination"
    DONE = "done"
    FAILED = "failed"


class ProgressTracker:
    """Tracks matching progress and logs periodic updates."""

    def __init__(self, total_tracks: int, progress_interval_sec: int = 60):
        """Initialize progress tracker.

        Args:
            total_tracks: Total number of tracks to process
            progress_interval_sec: Interval for progress updates in seconds
        """
        self.total_tracks = total_tracks
        self.processed_tracks = 0
        self.matched_tracks = 0
        self.not_found_tracks = 0
        self.error_tracks = 0
        self.last_progress_time = time.time()
        self.progress_interval_sec = progress_interval_sec
        self.start_time = time.time()

    def update(self, track_index: int, outcome: TrackOutcome) -> None:
        """Update progress with a new track outcome.

        Args:
            track_index: Current track index (0-based)
            outcome: Outcome recorded for the track
        """
        self.processed_tracks = track_index + 1

        if outcome.matched:
            self.matched_tracks += 1
        elif outcome.error_message:
            self.error_tracks += 1
        else:
            self.not_found_tracks += 1

        current_time = time.time()

        # Log progress every 10 tracks or every progress_interval_sec
        if (self.processed_tracks % 10 == 0 or
                self.processed_tracks == self.total_tracks or
                current_time - self.last_progress_time >= self.progress_interval_sec):

            elapsed_sec = current_time - self.start_time
            progress_pct = (self.processed_tracks / self.total_tracks) * 100 if self.total_tracks else 100.0

            logger.info(f"Progress: {self.processed_tracks}/{self.total_tracks} tracks ({progress_pct:.1f}%) "
                        f"processed in {elapsed_sec:.1f}s. "
                        f"Matched: {self.matched_tracks}, Not found: {self.not_found_tracks}, "
                        f"Errors: {self.error_tracks}")

            self.last_progress_time = current_time


class _ConversionRun:
    """State owned by exactly one conversion call."""

    def __init__(self, conversion_id: str):
        self.conversion_id = conversion_id
        self.stage = ConversionStage.IDLE
        self.outcomes: List[TrackOutcome] = []
        self.matched_ids: List[str] = []
        self.metrics = ConversionMetrics()
        self.started_at = time.monotonic()

    def advance(self, stage: ConversionStage) -> None:
        logger.debug(f"Conversion {self.conversion_id}: {self.stage.value} -> {stage.value}")
        self.stage = stage
        set_stage(stage.value)


class ConversionPipeline:
    """Converts a YouTube playlist into a new Spotify playlist.

    One instance can serve many callers. Every `convert` call builds its own
    destination client from the caller's access token and keeps all mutable
    state local to the call.
    """

    def __init__(self,
                 source_reader: SourceReader,
                 destination_factory: Callable[[str], DestinationPlatformClient],
                 auth_client: Optional[AuthClient] = None,
                 market: str = "US",
                 search_limit: int = 50,
                 pace_interval_sec: float = 0.1,
                 batch_retries: int = 0,
                 pacer_factory: Optional[Callable[[], RatePacer]] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize the pipeline.

        Args:
            source_reader: Reader for source playlists
            destination_factory: Builds a destination client bound to an access token
            auth_client: OAuth client used by `initiate_login`
            market: Market every destination search is scoped to
            search_limit: Maximum candidates per search call
            pace_interval_sec: Minimum spacing between consecutive tracks during matching
            batch_retries: Extra attempts for a rejected add-tracks batch
            pacer_factory: Builds the per-run pacer; defaults to a RatePacer with `pace_interval_sec`
            sleep: Function used for batch retry backoff
        """
        self.source_reader = source_reader
        self.destination_factory = destination_factory
        self.auth_client = auth_client
        self.market = market
        self.search_limit = search_limit
        self.pace_interval_sec = pace_interval_sec
        self.batch_retries = batch_retries
        self.pacer_factory = pacer_factory or (lambda: RatePacer(self.pace_interval_sec))
        self._sleep = sleep

    def initiate_login(self) -> str:
        """Return the destination platform's authorization URL."""
        if self.auth_client is None:
            raise ConversionError("Login is not configured")
        return self.auth_client.login()

    def convert(self, source_url: str, destination_name: str, identity: Optional[Identity]) -> ConversionResult:
        """Run a full conversion.

        Args:
            source_url: Source playlist URL
            destination_name: Name of the playlist to create
            identity: Caller credentials for the destination platform

        Returns:
            ConversionResult with the playlist URL, summary and per-track outcomes

        Raises:
            ConversionError: Any fatal validation, source or playlist creation failure
        """
        run = _ConversionRun(uuid.uuid4().hex[:12])

        with CorrelationContext(conversion_id=run.conversion_id, stage=run.stage.value):
            try:
                run.advance(ConversionStage.VALIDATING)
                self._validate(source_url, destination_name, identity)
                log_conversion_start(logger, source_url.strip(), destination_name.strip())

                run.advance(ConversionStage.FETCHING_SOURCE)
                tracks = self.source_reader.fetch_from_url(source_url.strip())

                destination = self.destination_factory(identity.access_token)

                run.advance(ConversionStage.MATCHING)
                self._match_tracks(run, tracks, destination)

                run.advance(ConversionStage.BUILDING_DESTINATION)
                build = self._build_destination(run, destination, identity, destination_name.strip())

                run.advance(ConversionStage.DONE)
                return self._assemble_result(run, build)

            except ConversionError as e:
                run.advance(ConversionStage.FAILED)
                logger.error(f"Conversion failed ({e.code}): {e}")
                raise
            except Exception as e:
                run.advance(ConversionStage.FAILED)
                logger.exception(f"Conversion failed unexpectedly: {e}")
                raise

    def _validate(self, source_url: str, destination_name: str, identity: Optional[Identity]) -> None:
        """Reject bad requests before any network call."""
        if identity is not None and not isinstance(identity.access_token, (str, type(None))):
            raise InvalidInputError("Access token must be a string")
        if identity is None or not (identity.access_token or "").strip():
            raise UnauthenticatedError("Please login with Spotify first")

        for field_name, value in (("name", destination_name), ("url", source_url)):
            if value is not None and not isinstance(value, str):
                raise InvalidInputError(f"Playlist {field_name} must be a string")

        if not (destination_name or "").strip():
            raise InvalidInputError("Please provide a name for your playlist")
        if not (source_url or "").strip():
            raise InvalidInputError("Please provide a playlist URL")

        platform = classify_url(source_url)
        logger.info(f"Source URL type: {platform.value}")
        if platform is Platform.UNKNOWN:
            raise UnsupportedUrlError(
                "Invalid playlist URL. Please provide a valid YouTube or Spotify playlist URL."
            )
        if platform is Platform.SPOTIFY:
            raise UnsupportedDirectionError("Spotify to YouTube conversion is not implemented yet")

    def _match_tracks(self,
                      run: _ConversionRun,
                      tracks: Tuple[TrackDescriptor, ...],
                      destination: DestinationPlatformClient) -> None:
        """Resolve every track sequentially, isolating per-track failures."""
        matcher = CandidateMatcher(destination, search_limit=self.search_limit, market=self.market)
        pacer = self.pacer_factory()
        progress = ProgressTracker(len(tracks))

        logger.info(f"Matching {len(tracks)} tracks...")
        for index, track in enumerate(tracks):
            run.metrics.record_pacing_wait_ms(pacer.wait() * 1000)

            with CorrelationContext(track_index=index):
                calls_before = matcher.search_calls
                try:
                    match = matcher.match(track)
                except SearchTransportError as e:
                    logger.error(f"Search failed for track {index + 1} ('{track.title}'): {e}")
                    outcome = TrackOutcome.failed(track, str(e))
                    run.metrics.record_track_error()
                except Exception as e:
                    logger.exception(f"Error processing track {index + 1} ('{track.title}'): {e}")
                    outcome = TrackOutcome.failed(track, str(e) or type(e).__name__)
                    run.metrics.record_track_error()
                else:
                    if match is not None:
                        outcome = TrackOutcome.from_match(track, match)
                        run.matched_ids.append(match.candidate.uri)
                        run.metrics.record_strategy_hit(match.strategy)
                    else:
                        outcome = TrackOutcome.unmatched(track)
                finally:
                    run.metrics.record_search_calls(matcher.search_calls - calls_before)
                    pacer.release()

            run.outcomes.append(outcome)
            progress.update(index, outcome)

    def _build_destination(self,
                           run: _ConversionRun,
                           destination: DestinationPlatformClient,
                           identity: Identity,
                           name: str) -> BuildResult:
        """Resolve the owner and create the playlist with the matched tracks."""
        try:
            profile = destination.get_current_user()
        except ConversionError:
            raise
        except Exception as e:
            raise PlaylistCreateError(f"Could not resolve the Spotify user to own the playlist: {e}") from e

        if identity.user_id and identity.user_id != profile.id:
            logger.warning(f"Identity user {identity.user_id} differs from token owner {profile.id}; using token owner")
        owner = UserProfile(id=profile.id, display_name=profile.display_name)

        builder = PlaylistBuilder(destination, max_retries=self.batch_retries, sleep=self._sleep)
        return builder.build(owner, name, run.matched_ids)

    def _assemble_result(self, run: _ConversionRun, build: BuildResult) -> ConversionResult:
        outcomes = tuple(run.outcomes)
        summary = ConversionSummary.from_outcomes(outcomes)

        run.metrics.record_match_rate(summary)
        run.metrics.record_duration_ms(int((time.monotonic() - run.started_at) * 1000))
        metrics: Dict[str, Any] = run.metrics.get_metrics()

        log_conversion_complete(
            logger, summary.total, summary.matched, len(build.failures),
            average_match_score=summary.average_match_score,
            playlist_url=build.playlist.url,
        )

        return ConversionResult(
            destination_playlist_url=build.playlist.url,
            destination_playlist_id=build.playlist.id,
            summary=summary,
            outcomes=outcomes,
            batch_failures=tuple(build.failures),
            tracks_added=build.tracks_added,
            metrics=metrics,
        )

from enum import Enum
from typing import Any, Dict, Optional

from playlist_converter.domain.entities import (
    BatchFailure, ConversionResult, ConversionSummary, TrackOutcome,
)


class TrackStatus(str, Enum):
    """Status of one source track in the conversion report."""

    MATCHED = "matched"
    NOT_FOUND = "not_found"
    ERROR = "error"


def outcome_status(outcome: TrackOutcome) -> TrackStatus:
    if outcome.matched:
        return TrackStatus.MATCHED
    if outcome.error_message:
        return TrackStatus.ERROR
    return TrackStatus.NOT_FOUND


def summary_to_json(summary: ConversionSummary) -> Dict[str, Any]:
    """Serialize a summary. A missing average is reported as null."""
    return {
        "total": summary.total,
        "matched": summary.matched,
        "unmatched": summary.unmatched,
        "averageMatchScore": summary.average_match_score,
    }


def outcome_to_json(outcome: TrackOutcome) -> Dict[str, Any]:
    """Serialize one track outcome in the youtube/spotify wire shape."""
    data: Dict[str, Any] = {
        "youtube": {
            "title": outcome.source.title,
            "artist": outcome.source.artist,
            "id": outcome.source.source_id,
        },
        "matched": outcome.matched,
        "status": outcome_status(outcome).value,
    }
    if outcome.destination is not None:
        data["spotify"] = {
            "title": outcome.destination.title,
            "artist": outcome.destination.artist,
            "uri": outcome.destination.uri,
            "matchScore": outcome.destination.score,
            "duration": outcome.destination.duration_ms,
            "previewUrl": outcome.destination.preview_url,
        }
    if outcome.error_message:
        data["error"] = outcome.error_message
    return data


def batch_failure_to_json(failure: BatchFailure) -> Dict[str, Any]:
    return {
        "batchIndex": failure.batch_index,
        "trackCount": len(failure.track_ids),
        "trackIds": list(failure.track_ids),
        "error": failure.message,
    }


def result_to_json(result: ConversionResult, platform: str = "spotify") -> Dict[str, Any]:
    """Serialize a conversion result into the response returned to callers."""
    return {
        "platform": platform,
        "playlistUrl": result.destination_playlist_url,
        "playlistId": result.destination_playlist_id,
        "summary": summary_to_json(result.summary),
        "tracks": [outcome_to_json(o) for o in result.outcomes],
        "tracksAdded": result.tracks_added,
        "partial": result.partial,
        "batchErrors": [batch_failure_to_json(f) for f in result.batch_failures],
        "metrics": dict(result.metrics),
    }


class ConversionMetrics:
    """Collects counters for one conversion run."""

    def __init__(self):
        self.reset()

    def record_search_calls(self, count: int) -> None:
        """Record search calls (additive)."""
        self._metrics["search_calls"] += max(0, count)

    def record_strategy_hit(self, strategy: Optional[str]) -> None:
        """Count which cascade strategy produced a match."""
        if not strategy:
            return
        hits = self._metrics["strategy_hits"]
        hits[strategy] = hits.get(strategy, 0) + 1

    def record_track_error(self) -> None:
        self._metrics["track_errors"] += 1

    def record_pacing_wait_ms(self, wait_ms: float) -> None:
        """Record pacing wait time in milliseconds (additive)."""
        self._metrics["pacing_wait_ms"] += max(0, int(round(wait_ms)))

    def record_match_rate(self, summary: ConversionSummary) -> None:
        self._metrics["match_rate"] = summary.matched / summary.total if summary.total else 0.0

    def record_duration_ms(self, duration_ms: int) -> None:
        """Record run duration in milliseconds."""
        self._metrics["duration_ms"] = max(0, duration_ms)

    def get_metrics(self) -> Dict[str, Any]:
        """Get a copy of the current metrics."""
        metrics = dict(self._metrics)
        metrics["strategy_hits"] = dict(self._metrics["strategy_hits"])
        return metrics

    def reset(self) -> None:
        self._metrics: Dict[str, Any] = {
            "search_calls": 0,
            "strategy_hits": {},
            "track_errors": 0,
            "pacing_wait_ms": 0,
            "match_rate": 0.0,
            "duration_ms": 0,
        }

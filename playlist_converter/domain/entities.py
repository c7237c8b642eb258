from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple


UNKNOWN_ARTIST = "Unknown Artist"


@dataclass(frozen=True)
class TrackDescriptor:
    """A source playlist item, normalized to what matching needs."""

    title: str
    artist: str = UNKNOWN_ARTIST
    source_id: str = ""

    def __post_init__(self):
        if not self.artist:
            object.__setattr__(self, 'artist', UNKNOWN_ARTIST)


@dataclass(frozen=True)
class SearchCandidate:
    """Search result returned by the destination platform."""

    uri: str
    title: str
    artists: Tuple[str, ...] = ()
    duration_ms: int = 0
    id: Optional[str] = None
    preview_url: Optional[str] = None

    def __post_init__(self):
        # Accept any sequence but store a tuple so the candidate stays hashable
        object.__setattr__(self, 'artists', tuple(self.artists or ()))

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else ""


@dataclass(frozen=True)
class MatchResult:
    """Best accepted candidate for one source track."""

    candidate: SearchCandidate
    score: float
    strategy: str


@dataclass(frozen=True)
class DestinationTrack:
    """Reported view of the destination track an outcome resolved to."""

    title: str
    artist: str
    uri: str
    score: float
    duration_ms: int = 0
    preview_url: Optional[str] = None


@dataclass(frozen=True)
class TrackOutcome:
    """Per-track audit record. `matched` is true exactly when `destination` is set."""

    source: TrackDescriptor
    matched: bool
    destination: Optional[DestinationTrack] = None
    error_message: Optional[str] = None

    def __post_init__(self):
        if self.matched != (self.destination is not None):
            raise ValueError("matched outcomes carry a destination, unmatched ones do not")

    @classmethod
    def from_match(cls, source: TrackDescriptor, match: MatchResult) -> "TrackOutcome":
        candidate = match.candidate
        return cls(
            source=source,
            matched=True,
            destination=DestinationTrack(
                title=candidate.title,
                artist=candidate.primary_artist,
                uri=candidate.uri,
                score=match.score,
                duration_ms=candidate.duration_ms,
                preview_url=candidate.preview_url,
            ),
        )

    @classmethod
    def unmatched(cls, source: TrackDescriptor) -> "TrackOutcome":
        return cls(source=source, matched=False)

    @classmethod
    def failed(cls, source: TrackDescriptor, error_message: str) -> "TrackOutcome":
        return cls(source=source, matched=False, error_message=error_message)


@dataclass(frozen=True)
class ConversionSummary:
    """Aggregate counts. `average_match_score` is None when nothing matched."""

    total: int
    matched: int
    unmatched: int
    average_match_score: Optional[float] = None

    @classmethod
    def from_outcomes(cls, outcomes) -> "ConversionSummary":
        outcomes = list(outcomes)
        scores = [o.destination.score for o in outcomes if o.matched]
        average = sum(scores) / len(scores) if scores else None
        return cls(
            total=len(outcomes),
            matched=len(scores),
            unmatched=len(outcomes) - len(scores),
            average_match_score=average,
        )


@dataclass(frozen=True)
class BatchFailure:
    """An add-tracks batch that the destination platform rejected."""

    batch_index: int
    track_ids: Tuple[str, ...]
    message: str


@dataclass(frozen=True)
class ConversionResult:
    """Terminal artifact of a successful conversion run."""

    destination_playlist_url: str
    summary: ConversionSummary
    outcomes: Tuple[TrackOutcome, ...]
    destination_playlist_id: str = ""
    batch_failures: Tuple[BatchFailure, ...] = ()
    tracks_added: int = 0
    metrics: dict = field(default_factory=dict, compare=False)

    @property
    def partial(self) -> bool:
        """True when the playlist exists but some batches were not added."""
        return bool(self.batch_failures)


@dataclass(frozen=True)
class Identity:
    """Caller credentials for the destination platform."""

    access_token: str
    user_id: Optional[str] = None
    display_name: Optional[str] = None


@dataclass(frozen=True)
class UserProfile:
    id: str
    display_name: Optional[str] = None


@dataclass(frozen=True)
class CreatedPlaylist:
    id: str
    url: str
    name: str = ""


@dataclass(frozen=True)
class SourcePage:
    """One page of a source playlist listing."""

    items: Tuple[TrackDescriptor, ...]
    next_page_token: Optional[str] = None


@dataclass(frozen=True)
class AuthTokens:
    """Result of an OAuth authorization-code exchange."""

    access_token: str
    refresh_token: str
    user_id: str
    display_name: Optional[str] = None
    email: Optional[str] = None

import logging
from typing import List, Optional, Tuple

from playlist_converter.domain.entities import MatchResult, SearchCandidate, TrackDescriptor
from playlist_converter.domain.normalization import clean_title, is_remix, normalize_string
from playlist_converter.domain.ports import DestinationPlatformClient


logger = logging.getLogger(__name__)

TITLE_WEIGHT = 0.7
ARTIST_WEIGHT = 0.3
ACCEPTANCE_THRESHOLD = 0.5

STRATEGY_STRICT = "strict"
STRATEGY_TITLE_ARTIST = "title-artist"
STRATEGY_TITLE_ONLY = "title-only"
STRATEGIES = (STRATEGY_STRICT, STRATEGY_TITLE_ARTIST, STRATEGY_TITLE_ONLY)


def calculate_match_score(track: TrackDescriptor, candidate: SearchCandidate) -> float:
    """Score a candidate against the original (uncleaned) source title and artist.

    Title and artist are each a containment test on normalized strings, so the
    score is always one of 0, 0.3, 0.7 or 1.0.
    """
    source_title = normalize_string(track.title)
    source_artist = normalize_string(track.artist)
    candidate_title = normalize_string(candidate.title)
    candidate_artists = [normalize_string(a) for a in candidate.artists]

    score = 0.0
    if candidate_title in source_title or source_title in candidate_title:
        score += TITLE_WEIGHT
    if any(artist in source_artist for artist in candidate_artists):
        score += ARTIST_WEIGHT
    return round(score, 2)


def build_queries(track: TrackDescriptor) -> List[Tuple[str, str]]:
    """Return the search cascade as (strategy, query) pairs, most specific first."""
    title = clean_title(track.title)
    if not title:
        return []
    # A double quote inside a field would close the field filter early
    strict_artist = " ".join(track.artist.replace('"', " ").split())
    strict_title = " ".join(title.replace('"', " ").split())
    return [
        (STRATEGY_STRICT, f'artist:"{strict_artist}" track:"{strict_title}"'),
        (STRATEGY_TITLE_ARTIST, f"{title} {track.artist}"),
        (STRATEGY_TITLE_ONLY, title),
    ]


class CandidateMatcher:
    """Resolves source tracks to destination tracks through a cascade of searches.

    Strategies run from most to least specific and the cascade stops at the
    first strategy that yields a candidate scoring above the acceptance
    threshold. Remix candidates are never selected.
    """

    def __init__(self,
                 client: DestinationPlatformClient,
                 search_limit: int = 50,
                 market: str = "US"):
        """Initialize the matcher.

        Args:
            client: Destination platform client bound to the caller's credentials
            search_limit: Maximum candidates requested per search call
            market: Market/locale every search is scoped to
        """
        self.client = client
        self.search_limit = search_limit
        self.market = market
        self.search_calls = 0

    def match(self, track: TrackDescriptor) -> Optional[MatchResult]:
        """Find the best destination candidate for a source track.

        Args:
            track: Source track to resolve

        Returns:
            The accepted best match, or None when no strategy produced one

        Raises:
            SearchTransportError: If a search call fails
        """
        queries = build_queries(track)
        if not queries:
            logger.info(f"Title '{track.title}' is empty after cleaning; skipping search")
            return None

        for strategy, query in queries:
            logger.debug(f"Trying {strategy} search with query: {query}")
            self.search_calls += 1
            candidates = self.client.search_tracks(query, self.search_limit, self.market)

            result = self.select_best(track, candidates, strategy)
            if result is not None:
                logger.info(
                    f"Matched '{track.title}' by '{track.artist}' -> '{result.candidate.title}' by "
                    f"'{result.candidate.primary_artist}' (score {result.score:.2f}, {strategy})"
                )
                return result

        logger.info(f"No match found for '{track.title}' by '{track.artist}'")
        return None

    def select_best(self,
                    track: TrackDescriptor,
                    candidates: List[SearchCandidate],
                    strategy: str = STRATEGY_STRICT) -> Optional[MatchResult]:
        """Pick the highest-scoring accepted candidate; ties keep search order.

        Args:
            track: Source track
            candidates: Candidates in search-result order
            strategy: Strategy that produced the candidates

        Returns:
            MatchResult or None when no candidate clears the threshold
        """
        best: Optional[MatchResult] = None
        for candidate in candidates:
            if is_remix(candidate.title):
                continue
            score = calculate_match_score(track, candidate)
            if score <= ACCEPTANCE_THRESHOLD:
                continue
            if best is None or score > best.score:
                best = MatchResult(candidate=candidate, score=score, strategy=strategy)
        return best

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence

from spotify2jspf.application.matching import MatchSelector
from spotify2jspf.domain.entities import ResolutionOutcome, Resolved, SourceTrack, Unresolved
from spotify2jspf.domain.normalization import (
    build_recording_query,
    escape_lucene,
    spotify_uri_to_url,
    strip_lucene,
)
from spotify2jspf.domain.ports import RecordingDatabase


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StrategyAttempt:
    """What one lookup strategy produced for one track."""

    outcome: ResolutionOutcome
    transient: bool = False


class LookupStrategy(Protocol):
    """Common capability of every lookup strategy."""

    name: str
    # When True a transient network failure ends resolution of the current
    # track instead of falling through to the next strategy.
    abort_on_transient: bool

    def attempt(self, track: SourceTrack) -> StrategyAttempt:
        """Try to resolve the track. Must not raise on network trouble."""


class BacklinkStrategy:
    """Finds recordings that MusicBrainz links to the track's Spotify URL.

    The first usable linked recording is the sole candidate. The link vouches
    for identity, so a record that carries no title or artist credit borrows
    the source values; a record without an id is ignored.
    """

    name = "backlink"

    def __init__(self, database: RecordingDatabase, selector: MatchSelector,
                 abort_on_transient: bool = True):
        self.database = database
        self.selector = selector
        self.abort_on_transient = abort_on_transient

    def attempt(self, track: SourceTrack) -> StrategyAttempt:
        resource = spotify_uri_to_url(track.source_uri)
        if not resource:
            return StrategyAttempt(Unresolved("no_match"))

        result = self.database.lookup_url(resource)
        if result.transient:
            return StrategyAttempt(Unresolved("transient_failure"), transient=True)
        if not result.ok:
            return StrategyAttempt(Unresolved("no_match"))

        linked = self.database.linked_recordings(result.payload,
                                                 default_title=track.track_name,
                                                 default_artist=track.artist_name)
        if not linked:
            logger.debug(f"No usable recording linked to {resource}")

        return StrategyAttempt(
            self.selector.select(linked[:1], track.artist_name, track.track_name, strategy=self.name)
        )


class TextSearchStrategy:
    """Recording search by artist and title.

    normalize is applied to both fields before they are placed in the
    structured query; escape_lucene and strip_lucene give the two default
    variants.
    """

    def __init__(self, name: str, database: RecordingDatabase, selector: MatchSelector,
                 normalize: Callable[[str], str], abort_on_transient: bool = False):
        self.name = name
        self.database = database
        self.selector = selector
        self.normalize = normalize
        self.abort_on_transient = abort_on_transient

    def build_query(self, track: SourceTrack) -> Optional[str]:
        artist = self.normalize(track.artist_name)
        title = self.normalize(track.track_name)
        if not artist and not title:
            return None
        return build_recording_query(artist, title)

    def attempt(self, track: SourceTrack) -> StrategyAttempt:
        query = self.build_query(track)
        if query is None:
            logger.debug(f"Nothing left to search for after {self.name} normalization")
            return StrategyAttempt(Unresolved("no_match"))

        logger.debug(f"Searching recordings ({self.name}): {query}")
        result = self.database.search_recordings(query)
        if result.transient:
            return StrategyAttempt(Unresolved("transient_failure"), transient=True)
        if not result.ok:
            return StrategyAttempt(Unresolved("no_match"))

        candidates = self.database.recording_candidates(result.payload)
        return StrategyAttempt(
            self.selector.select(candidates, track.artist_name, track.track_name, strategy=self.name)
        )


def default_strategies(database: RecordingDatabase,
                       selector: Optional[MatchSelector] = None) -> List[LookupStrategy]:
    """Back-link lookup, then escaped text search, then stripped text search."""
    selector = selector or MatchSelector()
    return [
        BacklinkStrategy(database, selector, abort_on_transient=True),
        TextSearchStrategy("search_escaped", database, selector, escape_lucene),
        TextSearchStrategy("search_stripped", database, selector, strip_lucene),
    ]


class ResolutionSequencer:
    """Runs lookup strategies in order until one resolves the track."""

    def __init__(self, strategies: Sequence[LookupStrategy]):
        if not strategies:
            raise ValueError("At least one lookup strategy is required")
        self.strategies = list(strategies)

    def resolve(self, track: SourceTrack) -> ResolutionOutcome:
        """Resolve a source track to a recording.

        Args:
            track: Track to resolve

        Returns:
            The first Resolved outcome, or Unresolved once every strategy is
            exhausted or a strict strategy hit a transient failure
        """
        saw_transient = False

        for strategy in self.strategies:
            attempt = strategy.attempt(track)

            if isinstance(attempt.outcome, Resolved):
                logger.debug(f"'{track.artist_name} - {track.track_name}' resolved by {strategy.name} "
                             f"(exact={attempt.outcome.exact})")
                return attempt.outcome

            if attempt.transient:
                saw_transient = True
                if strategy.abort_on_transient:
                    logger.warning(f"{strategy.name} lookup for {track.source_uri} failed after retries; "
                                   f"giving up on this track")
                    return Unresolved("transient_failure")
                logger.warning(f"{strategy.name} lookup for '{track.artist_name} - {track.track_name}' "
                               f"failed after retries; trying next strategy")

        return Unresolved("transient_failure" if saw_transient else "no_match")

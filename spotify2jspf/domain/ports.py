from __future__ import annotations

from typing import List, Optional, Protocol, TYPE_CHECKING

from .entities import RecordingCandidate

if TYPE_CHECKING:
    from spotify2jspf.infrastructure.musicbrainz import QueryResult


class RecordingDatabase(Protocol):
    """Port defining the two request kinds the resolution engine needs.

    Implementations must issue requests one at a time and report network trouble
    through the returned QueryResult instead of raising.
    """

    def lookup_url(self, resource: str) -> "QueryResult":
        """Look up recordings linked to an external resource URL."""

    def search_recordings(self, query: str) -> "QueryResult":
        """Run a free-text recording search."""

    def linked_recordings(self, payload: dict,
                          default_title: Optional[str] = None,
                          default_artist: Optional[str] = None) -> List[RecordingCandidate]:
        """Parse the recordings linked from a URL lookup payload, in service order."""

    def recording_candidates(self, payload: dict) -> List[RecordingCandidate]:
        """Parse a recording search payload into candidates, in service order."""

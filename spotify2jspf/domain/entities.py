from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class SourceTrack:
    """One entry of a playlist in the Spotify export."""

    artist_name: str = ""
    track_name: str = ""
    source_uri: str = ""
    added_at: str = ""


@dataclass(frozen=True)
class SourcePlaylist:
    """Playlist as read from the export document."""

    name: str
    last_modified_at: str = ""
    tracks: Tuple[SourceTrack, ...] = ()

    def __post_init__(self):
        if not isinstance(self.tracks, tuple):
            object.__setattr__(self, 'tracks', tuple(self.tracks))


@dataclass(frozen=True)
class RecordingCandidate:
    """Recording returned by the external database."""

    recording_id: str
    title: str
    primary_artist_name: str


@dataclass(frozen=True)
class Resolved:
    """A recording was selected for a source track."""

    candidate: RecordingCandidate
    exact: bool
    # Name of the lookup strategy that produced the candidate
    strategy: Optional[str] = None


@dataclass(frozen=True)
class Unresolved:
    """No recording could be selected for a source track.

    reason is "no_match" or "transient_failure"; both drop the track.
    """

    reason: str = "no_match"


ResolutionOutcome = Union[Resolved, Unresolved]


@dataclass(frozen=True)
class OutputTrack:
    """Track entry of an output JSPF playlist."""

    title: str
    creator: str
    identifier: str
    added_at: str = ""


@dataclass(frozen=True)
class OutputPlaylist:
    """Playlist ready to be written as one JSPF document."""

    title: str
    last_modified_at: str = ""
    is_public: bool = False
    tracks: Tuple[OutputTrack, ...] = ()

    def __post_init__(self):
        if not isinstance(self.tracks, tuple):
            object.__setattr__(self, 'tracks', tuple(self.tracks))

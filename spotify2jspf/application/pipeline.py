import time
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from spotify2jspf.application.matching import get_match_statistics
from spotify2jspf.application.strategies import ResolutionSequencer
from spotify2jspf.crosscutting.logging import (
    CorrelationContext,
    log_error,
    log_playlist_complete,
    log_playlist_start,
    log_track_unresolved,
)
from spotify2jspf.crosscutting.reporting import (
    PlaylistSummary,
    TrackResult,
    TrackStatus,
    create_playlist_summary,
    create_track_result,
)
from spotify2jspf.domain.entities import (
    OutputPlaylist,
    OutputTrack,
    ResolutionOutcome,
    Resolved,
    SourcePlaylist,
    SourceTrack,
    Unresolved,
)
from spotify2jspf.domain.errors import OutputDirectoryError
from spotify2jspf.infrastructure.jspf_writer import JSPFWriter, OutputPathAllocator
from spotify2jspf.infrastructure.musicbrainz import recording_identifier


logger = logging.getLogger(__name__)


@dataclass
class PlaylistResult:
    """Result of assembling one playlist."""

    playlist: OutputPlaylist
    total_tracks: int
    exact_tracks: int
    inexact_tracks: int
    unresolved_tracks: int
    track_results: List[TrackResult] = field(default_factory=list)
    output_path: Optional[Path] = None
    # Set when the playlist could not be written
    error: Optional[str] = None

    @property
    def resolved_tracks(self) -> int:
        return self.exact_tracks + self.inexact_tracks

    def totals(self) -> Dict[str, int]:
        return {
            "total": self.total_tracks,
            "resolved": self.resolved_tracks,
            "exact": self.exact_tracks,
            "inexact": self.inexact_tracks,
            "unresolved": self.unresolved_tracks,
        }


class ProgressTracker:
    """Tracks progress and provides periodic updates."""

    def __init__(self, total_tracks: int, progress_interval_sec: int = 60):
        """Initialize progress tracker.

        Args:
            total_tracks: Total number of tracks to process
            progress_interval_sec: Interval for progress updates in seconds
        """
        self.total_tracks = total_tracks
        self.processed_tracks = 0
        self.resolved_tracks = 0
        self.unresolved_tracks = 0
        self.last_progress_time = time.time()
        self.progress_interval_sec = progress_interval_sec
        self.start_time = time.time()

    def update(self, track_index: int, outcome: ResolutionOutcome) -> None:
        """Update progress with a new track outcome.

        Args:
            track_index: Current track index (0-based)
            outcome: Resolution outcome of the track
        """
        self.processed_tracks = track_index + 1

        if isinstance(outcome, Resolved):
            self.resolved_tracks += 1
        else:
            self.unresolved_tracks += 1

        current_time = time.time()

        # Log progress every 10 tracks or every progress_interval_sec
        if (self.processed_tracks % 10 == 0 or
                current_time - self.last_progress_time >= self.progress_interval_sec):

            elapsed_sec = current_time - self.start_time
            progress_pct = (self.processed_tracks / self.total_tracks) * 100 if self.total_tracks else 100.0

            logger.info(f"Progress: {self.processed_tracks}/{self.total_tracks} tracks ({progress_pct:.1f}%) "
                        f"processed in {elapsed_sec:.1f}s. "
                        f"Resolved: {self.resolved_tracks}, Unresolved: {self.unresolved_tracks}")

            self.last_progress_time = current_time

    def get_final_summary(self) -> Dict[str, Any]:
        """Get final progress summary."""
        total_time = time.time() - self.start_time
        match_rate = (self.resolved_tracks / self.total_tracks) * 100 if self.total_tracks > 0 else 0

        return {
            "total_tracks": self.total_tracks,
            "processed_tracks": self.processed_tracks,
            "resolved_tracks": self.resolved_tracks,
            "unresolved_tracks": self.unresolved_tracks,
            "match_rate_percent": match_rate,
            "total_time_seconds": total_time,
        }


def build_output_track(track: SourceTrack, outcome: ResolutionOutcome) -> Optional[OutputTrack]:
    """Output track for a source track, or None if it has to be dropped.

    An inexact match takes title and creator from the recording so the output
    reflects what MusicBrainz records.
    """
    if not isinstance(outcome, Resolved):
        return None

    candidate = outcome.candidate
    if outcome.exact:
        title, creator = track.track_name, track.artist_name
    else:
        title, creator = candidate.title, candidate.primary_artist_name

    return OutputTrack(
        title=title,
        creator=creator,
        identifier=recording_identifier(candidate.recording_id),
        added_at=track.added_at,
    )


class PlaylistAssembler:
    """Resolves every track of a playlist and builds the output playlist."""

    def __init__(self, sequencer: ResolutionSequencer, progress_interval_sec: int = 60):
        self.sequencer = sequencer
        self.progress_interval_sec = progress_interval_sec

    def resolve_track(self, track: SourceTrack) -> ResolutionOutcome:
        """Resolve one track; an unexpected error only costs this track."""
        try:
            return self.sequencer.resolve(track)
        except Exception as e:
            logger.error(f"Error resolving '{track.artist_name} - {track.track_name}': {e}", exc_info=True)
            return Unresolved("no_match")

    def assemble(self, source_playlist: SourcePlaylist) -> PlaylistResult:
        """Resolve tracks in order and assemble the output playlist.

        Args:
            source_playlist: Playlist read from the export

        Returns:
            PlaylistResult with the output playlist and per-track results
        """
        tracks: List[OutputTrack] = []
        track_results: List[TrackResult] = []
        outcomes: List[ResolutionOutcome] = []
        exact = inexact = unresolved = 0
        progress = ProgressTracker(len(source_playlist.tracks), self.progress_interval_sec)

        for index, source_track in enumerate(source_playlist.tracks):
            outcome = self.resolve_track(source_track)
            outcomes.append(outcome)
            output_track = build_output_track(source_track, outcome)

            if output_track is None:
                unresolved += 1
                log_track_unresolved(logger, source_track.artist_name, source_track.track_name,
                                     source_track.source_uri, outcome.reason)
            else:
                tracks.append(output_track)
                if outcome.exact:
                    exact += 1
                else:
                    inexact += 1
                logger.info(f"Mapped '{source_track.artist_name} - {source_track.track_name}' "
                            f"to {output_track.identifier}"
                            f"{'' if outcome.exact else f' ({output_track.creator} - {output_track.title})'}")

            track_results.append(create_track_result(source_track, outcome))
            progress.update(index, outcome)

        logger.debug(f"Final resolution summary: {progress.get_final_summary()}")
        logger.debug(f"Matches by strategy: {get_match_statistics(outcomes)['by_strategy']}")

        return PlaylistResult(
            playlist=OutputPlaylist(
                title=source_playlist.name,
                last_modified_at=source_playlist.last_modified_at,
                is_public=False,
                tracks=tuple(tracks),
            ),
            total_tracks=len(source_playlist.tracks),
            exact_tracks=exact,
            inexact_tracks=inexact,
            unresolved_tracks=unresolved,
            track_results=track_results,
        )


class ConversionPipeline:
    """Converts export playlists to JSPF files, one playlist at a time."""

    def __init__(self,
                 assembler: PlaylistAssembler,
                 writer: Optional[JSPFWriter] = None):
        self.assembler = assembler
        self.writer = writer or JSPFWriter()

    def convert_playlist(self, source_playlist: SourcePlaylist,
                         allocator: OutputPathAllocator) -> PlaylistResult:
        """Resolve, allocate a file name for, and write one playlist.

        A write failure is recorded on the result instead of raised, so the
        remaining playlists are still converted.
        """
        with CorrelationContext(playlist=source_playlist.name, stage='resolve'):
            log_playlist_start(logger, source_playlist.name, len(source_playlist.tracks))
            result = self.assembler.assemble(source_playlist)

            try:
                path = allocator.allocate(source_playlist.name)
                result.output_path = self.writer.write(result.playlist, path)
            except OutputDirectoryError as e:
                result.error = str(e)
                log_error(logger, f"Failed to write playlist '{source_playlist.name}'", e)
                return result

            log_playlist_complete(logger, source_playlist.name,
                                  result.resolved_tracks, result.total_tracks,
                                  output=str(result.output_path))
        return result

    def run(self, playlists: Iterable[SourcePlaylist],
            out_dir: Union[str, Path]) -> List[PlaylistSummary]:
        """Convert every playlist into out_dir.

        Unresolved tracks never abort a playlist, and one playlist's outcome
        never affects the next one.

        Returns:
            One summary per playlist, in input order
        """
        start_time = datetime.now()
        allocator = OutputPathAllocator(out_dir)
        summaries: List[PlaylistSummary] = []

        for source_playlist in playlists:
            result = self.convert_playlist(source_playlist, allocator)
            summaries.append(create_playlist_summary(
                source_playlist.name,
                result.totals(),
                tracks=result.track_results,
                output_path=str(result.output_path) if result.output_path else None,
                error=result.error,
            ))

        duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
        resolved = sum(s.totals.get("resolved", 0) for s in summaries)
        total = sum(s.totals.get("total", 0) for s in summaries)
        logger.info(f"Converted {len(summaries)} playlists: {resolved}/{total} tracks resolved "
                    f"in {duration_ms}ms")
        return summaries


def count_status(summaries: List[PlaylistSummary], status: TrackStatus) -> int:
    """Number of tracks with the given status across playlists."""
    return sum(1 for s in summaries for t in s.tracks if t.status == status)

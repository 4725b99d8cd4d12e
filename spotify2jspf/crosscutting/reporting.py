import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Any, Optional, Union

from spotify2jspf.domain.entities import ResolutionOutcome, Resolved, SourceTrack


class TrackStatus(str, Enum):
    """Status of a track conversion."""

    EXACT = "exact"
    INEXACT = "inexact"
    UNRESOLVED = "unresolved"
    TRANSIENT_FAILURE = "transient_failure"


def status_for(outcome: ResolutionOutcome) -> TrackStatus:
    """Map a resolution outcome to its report status."""
    if isinstance(outcome, Resolved):
        return TrackStatus.EXACT if outcome.exact else TrackStatus.INEXACT
    if outcome.reason == "transient_failure":
        return TrackStatus.TRANSIENT_FAILURE
    return TrackStatus.UNRESOLVED


@dataclass
class ReportHeader:
    """Header information for a conversion report."""

    run_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    input_file: str = ""
    output_dir: str = ""

    def to_json(self) -> Dict[str, Any]:
        """Serialize header to JSON."""
        return {
            "runId": self.run_id,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "inputFile": self.input_file,
            "outputDir": self.output_dir,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ReportHeader":
        """Deserialize header from JSON."""
        return cls(
            run_id=data["runId"],
            started_at=datetime.fromisoformat(data["startedAt"]),
            finished_at=datetime.fromisoformat(data["finishedAt"]) if data.get("finishedAt") else None,
            input_file=data.get("inputFile", ""),
            output_dir=data.get("outputDir", ""),
        )


@dataclass
class TrackResult:
    """Result of converting one source track."""

    artist_name: str
    track_name: str
    source_uri: str
    status: TrackStatus
    recording_id: Optional[str] = None
    strategy: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        """Serialize track result to JSON."""
        return {
            "artistName": self.artist_name,
            "trackName": self.track_name,
            "sourceUri": self.source_uri,
            "status": self.status.value,
            "recordingId": self.recording_id,
            "strategy": self.strategy,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TrackResult":
        """Deserialize track result from JSON."""
        return cls(
            artist_name=data["artistName"],
            track_name=data["trackName"],
            source_uri=data["sourceUri"],
            status=TrackStatus(data["status"]),
            recording_id=data.get("recordingId"),
            strategy=data.get("strategy"),
        )


@dataclass
class PlaylistSummary:
    """Summary of one converted playlist."""

    name: str
    output_path: Optional[str] = None
    totals: Dict[str, int] = field(default_factory=dict)
    tracks: List[TrackResult] = field(default_factory=list)
    error: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        """Serialize playlist summary to JSON."""
        return {
            "name": self.name,
            "outputPath": self.output_path,
            "totals": self.totals,
            "tracks": [t.to_json() for t in self.tracks],
            "error": self.error,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "PlaylistSummary":
        """Deserialize playlist summary from JSON."""
        return cls(
            name=data["name"],
            output_path=data.get("outputPath"),
            totals=data.get("totals", {}),
            tracks=[TrackResult.from_json(t) for t in data.get("tracks", [])],
            error=data.get("error"),
        )


class MetricsCollector:
    """Collects and aggregates metrics during a conversion run."""

    def __init__(self):
        self.reset()

    def record_match_rate(self, rate: float) -> None:
        """Record match rate (0.0 to 1.0)."""
        self._metrics["match_rate"] = max(0.0, min(1.0, rate))

    def record_request_count(self, count: int) -> None:
        """Record the number of requests sent to the database."""
        self._metrics["request_count"] = max(0, count)

    def record_retry_count(self, count: int) -> None:
        """Record retry count."""
        self._metrics["retry_count"] = max(0, count)

    def record_duration_ms(self, duration_ms: int) -> None:
        """Record run duration in milliseconds."""
        self._metrics["duration_ms"] = max(0, duration_ms)

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics."""
        return self._metrics.copy()

    def to_json(self) -> Dict[str, Any]:
        """Serialize metrics to JSON."""
        return self.get_metrics()

    def reset(self) -> None:
        """Reset all metrics to initial values."""
        self._metrics: Dict[str, Any] = {
            "match_rate": 0.0,
            "request_count": 0,
            "retry_count": 0,
            "duration_ms": 0,
        }


@dataclass
class Report:
    """Complete conversion report."""

    header: ReportHeader
    playlists: List[PlaylistSummary] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> Dict[str, Any]:
        """Serialize report to JSON."""
        return {
            "header": self.header.to_json(),
            "playlists": [p.to_json() for p in self.playlists],
            "metrics": dict(self.metrics),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Report":
        """Deserialize report from JSON."""
        return cls(
            header=ReportHeader.from_json(data["header"]),
            playlists=[PlaylistSummary.from_json(p) for p in data.get("playlists", [])],
            metrics=data.get("metrics", {}),
        )

    def totals(self) -> Dict[str, int]:
        """Track counts summed over all playlists."""
        combined: Dict[str, int] = {}
        for playlist in self.playlists:
            for key, value in playlist.totals.items():
                combined[key] = combined.get(key, 0) + value
        return combined

    def save(self, path: Union[str, Path]) -> Path:
        """Write the report as indented JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_json(), f, indent=2, ensure_ascii=False)
        return path


# Factory functions for creating report components

def create_report_header(run_id: str, input_file: str = "", output_dir: str = "") -> ReportHeader:
    """Create a new report header."""
    return ReportHeader(
        run_id=run_id,
        started_at=datetime.now(timezone.utc),
        input_file=input_file,
        output_dir=output_dir,
    )


def create_track_result(track: SourceTrack, outcome: ResolutionOutcome) -> TrackResult:
    """Create the report entry for one resolved or dropped track."""
    resolved = isinstance(outcome, Resolved)
    return TrackResult(
        artist_name=track.artist_name,
        track_name=track.track_name,
        source_uri=track.source_uri,
        status=status_for(outcome),
        recording_id=outcome.candidate.recording_id if resolved else None,
        strategy=outcome.strategy if resolved else None,
    )


def create_playlist_summary(name: str,
                            totals: Dict[str, int],
                            tracks: Optional[List[TrackResult]] = None,
                            output_path: Optional[str] = None,
                            error: Optional[str] = None) -> PlaylistSummary:
    """Create a new playlist summary."""
    return PlaylistSummary(
        name=name,
        output_path=output_path,
        totals=totals.copy(),
        tracks=list(tracks or []),
        error=error,
    )

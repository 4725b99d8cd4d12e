import json
from datetime import datetime, timezone

from spotify2jspf.crosscutting.reporting import (
    MetricsCollector,
    PlaylistSummary,
    Report,
    ReportHeader,
    TrackResult,
    TrackStatus,
    create_playlist_summary,
    create_report_header,
    create_track_result,
    status_for,
)
from spotify2jspf.domain.entities import RecordingCandidate, Resolved, SourceTrack, Unresolved


TRACK = SourceTrack("Artist A", "Song B", "spotify:track:1", "2023-01-01")


def test_status_for_outcomes():
    candidate = RecordingCandidate("abc", "Song B", "Artist A")

    assert status_for(Resolved(candidate, exact=True)) == TrackStatus.EXACT
    assert status_for(Resolved(candidate, exact=False)) == TrackStatus.INEXACT
    assert status_for(Unresolved("no_match")) == TrackStatus.UNRESOLVED
    assert status_for(Unresolved("transient_failure")) == TrackStatus.TRANSIENT_FAILURE


class TestTrackResult:
    """Tests for per-track report entries."""

    def test_create_from_resolved(self):
        outcome = Resolved(RecordingCandidate("abc", "Song B", "Artist A"), exact=True, strategy="backlink")

        result = create_track_result(TRACK, outcome)

        assert result == TrackResult("Artist A", "Song B", "spotify:track:1", TrackStatus.EXACT, "abc", "backlink")

    def test_create_from_unresolved(self):
        result = create_track_result(TRACK, Unresolved("no_match"))

        assert result.status == TrackStatus.UNRESOLVED
        assert result.recording_id is None
        assert result.strategy is None

    def test_json(self):
        result = TrackResult("Artist A", "Song B", "spotify:track:1", TrackStatus.INEXACT, "abc", "search_stripped")

        data = result.to_json()

        assert data == {
            "artistName": "Artist A",
            "trackName": "Song B",
            "sourceUri": "spotify:track:1",
            "status": "inexact",
            "recordingId": "abc",
            "strategy": "search_stripped",
        }
        assert TrackResult.from_json(data) == result


class TestMetricsCollector:
    """Tests for MetricsCollector class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.collector = MetricsCollector()

    def test_initial_metrics(self):
        assert self.collector.get_metrics() == {
            "match_rate": 0.0,
            "request_count": 0,
            "retry_count": 0,
            "duration_ms": 0,
        }

    def test_values_are_clamped(self):
        self.collector.record_match_rate(1.5)
        self.collector.record_request_count(-3)
        self.collector.record_retry_count(4)
        self.collector.record_duration_ms(1200)

        metrics = self.collector.to_json()

        assert metrics["match_rate"] == 1.0
        assert metrics["request_count"] == 0
        assert metrics["retry_count"] == 4
        assert metrics["duration_ms"] == 1200

    def test_reset(self):
        self.collector.record_retry_count(4)
        self.collector.reset()

        assert self.collector.get_metrics()["retry_count"] == 0


class TestReport:
    """Tests for the run report."""

    def make_report(self):
        header = ReportHeader(
            run_id="spotify2jspf_1",
            started_at=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
            finished_at=datetime(2024, 1, 1, 12, 5, tzinfo=timezone.utc),
            input_file="Playlist1.json",
            output_dir="out",
        )
        playlists = [
            create_playlist_summary("A", {"total": 3, "resolved": 2, "exact": 1, "inexact": 1, "unresolved": 1},
                                    tracks=[create_track_result(TRACK, Unresolved())],
                                    output_path="out/A.jspf"),
            create_playlist_summary("B", {"total": 1, "resolved": 1, "exact": 1, "inexact": 0, "unresolved": 0}),
        ]
        return Report(header=header, playlists=playlists, metrics={"match_rate": 0.75})

    def test_totals(self):
        assert self.make_report().totals() == {
            "total": 4, "resolved": 3, "exact": 2, "inexact": 1, "unresolved": 1,
        }

    def test_json_roundtrip(self):
        report = self.make_report()

        restored = Report.from_json(json.loads(json.dumps(report.to_json())))

        assert restored == report

    def test_save(self, tmp_path):
        path = self.make_report().save(tmp_path / "reports" / "run.json")

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["header"]["runId"] == "spotify2jspf_1"
        assert data["header"]["finishedAt"] == "2024-01-01T12:05:00+00:00"
        assert [p["name"] for p in data["playlists"]] == ["A", "B"]
        assert data["playlists"][0]["tracks"][0]["status"] == "unresolved"


def test_create_report_header():
    header = create_report_header("run_1", input_file="Playlist1.json", output_dir="out")

    assert header.run_id == "run_1"
    assert header.started_at.tzinfo is not None
    assert header.finished_at is None
    assert ReportHeader.from_json(header.to_json()) == header


def test_create_playlist_summary_copies_totals():
    totals = {"total": 1}

    summary = create_playlist_summary("A", totals)
    totals["total"] = 2

    assert summary == PlaylistSummary(name="A", totals={"total": 1})

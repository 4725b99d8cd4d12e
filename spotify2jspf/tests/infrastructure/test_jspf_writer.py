import json

import pytest

from spotify2jspf.domain.entities import OutputPlaylist, OutputTrack
from spotify2jspf.domain.errors import OutputDirectoryError
from spotify2jspf.infrastructure.jspf_writer import (
    MAX_FILE_NAME_BYTES,
    PLAYLIST_EXTENSION_KEY,
    TRACK_EXTENSION_KEY,
    JSPFWriter,
    OutputPathAllocator,
    encode_file_name,
    ensure_output_dir,
    playlist_to_jspf,
)


PLAYLIST = OutputPlaylist(
    title="My Mix",
    last_modified_at="2023-02-03",
    is_public=False,
    tracks=(
        OutputTrack("Song B", "Artist A", "https://musicbrainz.org/recording/abc", "2023-01-01"),
    ),
)


def test_encode_file_name_escapes_reserved_characters():
    assert encode_file_name("AC/DC: Best?") == "AC%2FDC%3A Best%3F"
    assert encode_file_name('a\\b*c"d<e>f|g') == "a%5Cb%2Ac%22d%3Ce%3Ef%7Cg"
    assert encode_file_name("100%") == "100%25"
    assert encode_file_name("tab\there") == "tab%09here"


def test_encode_file_name_keeps_other_characters():
    assert encode_file_name("My Mix (2023) - Кино & co.") == "My Mix (2023) - Кино & co."
    assert encode_file_name("") == ""


class TestOutputPathAllocator:
    """Tests for collision-free output naming."""

    def test_first_allocation_uses_plain_name(self, tmp_path):
        allocator = OutputPathAllocator(tmp_path)

        assert allocator.allocate("My Mix") == tmp_path / "My Mix.jspf"

    def test_existing_files_get_counter_suffix(self, tmp_path):
        (tmp_path / "My Mix.jspf").write_text("{}")
        (tmp_path / "My Mix (1).jspf").write_text("{}")
        allocator = OutputPathAllocator(tmp_path)

        assert allocator.allocate("My Mix") == tmp_path / "My Mix (2).jspf"

    def test_same_name_twice_in_one_run(self, tmp_path):
        allocator = OutputPathAllocator(tmp_path)
        writer = JSPFWriter()

        first = writer.write(PLAYLIST, allocator.allocate("My Mix"))
        second = writer.write(PLAYLIST, allocator.allocate("My Mix"))

        assert first.name == "My Mix.jspf"
        assert second.name == "My Mix (1).jspf"
        assert first.exists() and second.exists()

    def test_reserved_characters_are_encoded(self, tmp_path):
        allocator = OutputPathAllocator(tmp_path)

        assert allocator.allocate("a/b").name == "a%2Fb.jspf"


def test_playlist_document_shape():
    document = playlist_to_jspf(PLAYLIST)

    assert document == {
        "playlist": {
            "extension": {
                PLAYLIST_EXTENSION_KEY: {"last_modified_at": "2023-02-03", "public": False},
            },
            "date": "2023-02-03",
            "title": "My Mix",
            "track": [
                {
                    "title": "Song B",
                    "creator": "Artist A",
                    "identifier": "https://musicbrainz.org/recording/abc",
                    "extension": {TRACK_EXTENSION_KEY: {"added_at": "2023-01-01"}},
                }
            ],
        }
    }


def test_empty_playlist_has_empty_track_list():
    document = playlist_to_jspf(OutputPlaylist("Empty", "2023-03-01"))

    assert document["playlist"]["track"] == []


def test_writer_writes_utf8_json(tmp_path):
    playlist = OutputPlaylist("Кино", "2023-02-03")

    path = JSPFWriter().write(playlist, tmp_path / "Кино.jspf")

    text = path.read_text(encoding="utf-8")
    assert "Кино" in text
    assert json.loads(text)["playlist"]["title"] == "Кино"


def test_writer_reports_unwritable_path(tmp_path):
    with pytest.raises(OutputDirectoryError):
        JSPFWriter().write(PLAYLIST, tmp_path / "missing" / "My Mix.jspf")


def test_ensure_output_dir_creates_directory(tmp_path):
    target = tmp_path / "a" / "b"

    assert ensure_output_dir(target) == target
    assert target.is_dir()


def test_ensure_output_dir_rejects_file(tmp_path):
    target = tmp_path / "file"
    target.write_text("x")

    with pytest.raises(OutputDirectoryError):
        ensure_output_dir(target)


class TestLongAndEmptyNames:
    """Tests for names the filesystem cannot take as they are."""

    def test_long_multibyte_name_is_shortened_on_character_boundary(self, tmp_path):
        allocator = OutputPathAllocator(tmp_path)

        path = allocator.allocate("曲" * 90)

        assert len(path.name.encode("utf-8")) <= MAX_FILE_NAME_BYTES
        assert path.name == "曲" * 79 + ".jspf"
        path.write_text("{}")
        second = allocator.allocate("曲" * 90)
        assert second.name == "曲" * 79 + " (1).jspf"
        assert len(second.name.encode("utf-8")) <= MAX_FILE_NAME_BYTES

    def test_shortening_never_splits_a_percent_escape(self):
        assert encode_file_name("ab/cd", max_bytes=3) == "ab"
        assert encode_file_name("ab/cd", max_bytes=5) == "ab%2F"
        assert encode_file_name("ab/cd") == "ab%2Fcd"

    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_name_gets_visible_fallback(self, tmp_path, name):
        allocator = OutputPathAllocator(tmp_path)

        assert allocator.allocate(name) == tmp_path / "Untitled.jspf"

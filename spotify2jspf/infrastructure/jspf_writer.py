import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from spotify2jspf.domain.entities import OutputPlaylist, OutputTrack
from spotify2jspf.domain.errors import OutputDirectoryError

logger = logging.getLogger(__name__)


JSPF_EXTENSION = ".jspf"
PLAYLIST_EXTENSION_KEY = "https://musicbrainz.org/doc/jspf#playlist"
TRACK_EXTENSION_KEY = "https://musicbrainz.org/doc/jspf#track"

# Most filesystems cap a single file name at 255 bytes
MAX_FILE_NAME_BYTES = 255
# Room kept for the " (N)" disambiguation suffix
_SUFFIX_RESERVE_BYTES = 12
UNTITLED_NAME = "Untitled"

# Characters that cannot appear in a file name on common filesystems.
# "%" comes first so encoded names stay unambiguous.
_RESERVED_CHARS = '%/\\:*?"<>|'


def encode_file_name(name: str, max_bytes: Optional[int] = None) -> str:
    """Percent-encode filesystem-reserved and control characters in a name.

    With max_bytes the result is cut so its UTF-8 form fits, never inside a
    character or a percent escape.
    """
    encoded = []
    size = 0
    for char in name:
        if char in _RESERVED_CHARS or ord(char) < 0x20 or ord(char) == 0x7f:
            piece = f"%{ord(char):02X}"
        else:
            piece = char
        size += len(piece.encode('utf-8'))
        if max_bytes is not None and size > max_bytes:
            break
        encoded.append(piece)
    return "".join(encoded)


class OutputPathAllocator:
    """Chooses a collision-free output path per playlist name.

    Probes "<name>.jspf", "<name> (1).jspf", "<name> (2).jspf", ... and
    returns the first one that does not exist yet. Names too long for the
    filesystem are shortened first; an empty name becomes "Untitled".
    Allocation is sequential and not atomic against other writers.
    """

    def __init__(self, out_dir: Union[str, Path], extension: str = JSPF_EXTENSION):
        self.out_dir = Path(out_dir)
        self.extension = extension
        self.name_budget = MAX_FILE_NAME_BYTES - _SUFFIX_RESERVE_BYTES - len(extension.encode('utf-8'))

    def base_name(self, playlist_name: str) -> str:
        base = encode_file_name(playlist_name, max_bytes=self.name_budget)
        if not base.strip():
            return UNTITLED_NAME
        if len(base) < len(encode_file_name(playlist_name)):
            logger.debug(f"Shortened file name for playlist '{playlist_name}' to '{base}'")
        return base

    def allocate(self, playlist_name: str) -> Path:
        """Return a free output path for the playlist.

        Raises:
            OutputDirectoryError: If the output directory cannot be probed
        """
        base = self.base_name(playlist_name)
        candidate = self.out_dir / f"{base}{self.extension}"
        counter = 1
        try:
            while candidate.exists():
                candidate = self.out_dir / f"{base} ({counter}){self.extension}"
                counter += 1
        except OSError as e:
            raise OutputDirectoryError(f"Failed to allocate output file for '{playlist_name}': {e}")
        return candidate


def ensure_output_dir(out_dir: Union[str, Path]) -> Path:
    """Create the output directory if needed.

    Raises:
        OutputDirectoryError: If it cannot be created or is not writable
    """
    out_dir = Path(out_dir)
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputDirectoryError(f"Failed to create output directory {out_dir}: {e}")
    if not os.access(out_dir, os.W_OK):
        raise OutputDirectoryError(f"Output directory {out_dir} is not writable.")
    return out_dir


def track_to_jspf(track: OutputTrack) -> Dict[str, Any]:
    return {
        "title": track.title,
        "creator": track.creator,
        "identifier": track.identifier,
        "extension": {
            TRACK_EXTENSION_KEY: {
                "added_at": track.added_at,
            }
        },
    }


def playlist_to_jspf(playlist: OutputPlaylist) -> Dict[str, Any]:
    """Build the JSPF document for a playlist."""
    return {
        "playlist": {
            "extension": {
                PLAYLIST_EXTENSION_KEY: {
                    "last_modified_at": playlist.last_modified_at,
                    "public": playlist.is_public,
                }
            },
            "date": playlist.last_modified_at,
            "title": playlist.title,
            "track": [track_to_jspf(t) for t in playlist.tracks],
        }
    }


class JSPFWriter:
    """Writes output playlists as JSPF documents."""

    def write(self, playlist: OutputPlaylist, path: Union[str, Path]) -> Path:
        path = Path(path)
        document = playlist_to_jspf(playlist)
        try:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise OutputDirectoryError(f"Failed to write {path}: {e}")

        logger.debug(f"Wrote {len(playlist.tracks)} tracks to {path}")
        return path

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from spotify2jspf.domain.entities import SourcePlaylist, SourceTrack
from spotify2jspf.domain.errors import InputFileError, MalformedExportError

logger = logging.getLogger(__name__)


class ExportReader:
    """Reads playlists from a Spotify personal-data export (Playlist1.json)."""

    def read(self, path: Union[str, Path]) -> List[SourcePlaylist]:
        """Load and parse the export file.

        Args:
            path: Path to the export document

        Returns:
            Playlists in document order

        Raises:
            InputFileError: If the file is missing or unreadable
            MalformedExportError: If the document is not an export
        """
        path = Path(path)
        if not path.is_file():
            raise InputFileError(f"Input file {path} does not exist.")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            raise MalformedExportError(f"Input file {path} is not valid JSON: {e}")
        except OSError as e:
            raise InputFileError(f"Failed to read input file {path}: {e}")

        return self.parse(document)

    def parse(self, document: Any) -> List[SourcePlaylist]:
        """Convert an already decoded export document to playlists."""
        if not isinstance(document, dict) or not isinstance(document.get('playlists'), list):
            raise MalformedExportError("Export document has no 'playlists' list")

        playlists = []
        for index, raw in enumerate(document['playlists']):
            if not isinstance(raw, dict):
                raise MalformedExportError(f"Playlist entry {index} is not an object")
            playlists.append(self._parse_playlist(raw))

        logger.info(f"Read {len(playlists)} playlists from export")
        return playlists

    def _parse_playlist(self, raw: Dict[str, Any]) -> SourcePlaylist:
        name = raw.get('name') or ''
        tracks = []
        for item in raw.get('items') or []:
            track = self._parse_item(item)
            if track is None:
                logger.debug(f"Skipping non-track item in playlist '{name}': {item!r}")
                continue
            tracks.append(track)

        return SourcePlaylist(
            name=name,
            last_modified_at=raw.get('lastModifiedDate') or '',
            tracks=tuple(tracks),
        )

    def _parse_item(self, item: Any) -> Optional[SourceTrack]:
        # Episodes and local files carry no "track" object
        if not isinstance(item, dict) or not isinstance(item.get('track'), dict):
            return None

        track = item['track']
        return SourceTrack(
            artist_name=track.get('artistName') or '',
            track_name=track.get('trackName') or '',
            source_uri=track.get('trackUri') or '',
            added_at=item.get('addedDate') or '',
        )

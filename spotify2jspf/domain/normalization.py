from __future__ import annotations

import re


# Characters with meaning in the Lucene query syntax used by MusicBrainz search
LUCENE_SPECIAL_CHARS = (
    '\\', '+', '-', '&', '|', '!', '(', ')', '{', '}',
    '[', ']', '^', '"', '~', '*', '?', ':', '/',
)

_LUCENE_SPECIAL_PATTERN = re.compile(
    "[" + re.escape("".join(LUCENE_SPECIAL_CHARS)) + "]"
)
_MULTISPACE_PATTERN = re.compile(r"\s+")
_SPOTIFY_TRACK_URI = re.compile(r"^spotify:track:([A-Za-z0-9]+)$")
_SPOTIFY_TRACK_URL = re.compile(r"^https?://open\.spotify\.com/track/([A-Za-z0-9]+)")

SPOTIFY_TRACK_URL_PREFIX = "https://open.spotify.com/track/"


def escape_lucene(value: str) -> str:
    """Backslash-escape reserved search characters, keeping them in the query."""
    value = value or ""
    return _LUCENE_SPECIAL_PATTERN.sub(lambda m: "\\" + m.group(0), value)


def strip_lucene(value: str) -> str:
    """Delete reserved search characters and collapse the leftover whitespace."""
    value = value or ""
    value = _LUCENE_SPECIAL_PATTERN.sub("", value)
    return _MULTISPACE_PATTERN.sub(" ", value).strip()


def build_recording_query(artist: str, title: str) -> str:
    """Structured recording search query from already normalized fields."""
    return f'artist:"{artist}" AND recording:"{title}"'


def spotify_uri_to_url(uri: str) -> str:
    """Convert a spotify:track:<id> URI to the open.spotify.com URL form.

    MusicBrainz stores streaming links as URLs, so this is the resource a
    back-link lookup has to ask for. Anything that is not a track URI is
    returned unchanged.
    """
    uri = (uri or "").strip()
    match = _SPOTIFY_TRACK_URI.match(uri)
    if match:
        return SPOTIFY_TRACK_URL_PREFIX + match.group(1)
    match = _SPOTIFY_TRACK_URL.match(uri)
    if match:
        return SPOTIFY_TRACK_URL_PREFIX + match.group(1)
    return uri

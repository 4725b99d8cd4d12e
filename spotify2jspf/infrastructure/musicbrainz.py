import time
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import requests

from spotify2jspf.domain.entities import RecordingCandidate

logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "https://musicbrainz.org/ws/2"
RECORDING_URL_PREFIX = "https://musicbrainz.org/recording/"


class RequestKind(str, Enum):
    """Categories of query understood by the MusicBrainz web service."""

    URL_LOOKUP = "url"
    RECORDING_SEARCH = "recording"


class QueryStatus(str, Enum):
    """Outcome of a single client query."""

    OK = "ok"
    NO_MATCH = "no_match"
    TRANSIENT_FAILURE = "transient_failure"
    FATAL_FAILURE = "fatal_failure"


@dataclass(frozen=True)
class QueryResult:
    """Result of a query after the retry loop has finished."""

    status: QueryStatus
    payload: Optional[Dict[str, Any]] = None
    attempts: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == QueryStatus.OK

    @property
    def transient(self) -> bool:
        return self.status == QueryStatus.TRANSIENT_FAILURE


def recording_identifier(recording_id: str) -> str:
    """Canonical URI for a MusicBrainz recording id."""
    return RECORDING_URL_PREFIX + recording_id


class RequestPacer:
    """Keeps a minimum interval between consecutive requests."""

    def __init__(self, min_interval: float = 1.0, clock=time.monotonic, sleep=time.sleep):
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock
        self._sleep = sleep
        self._last_request: Optional[float] = None

    def wait(self) -> float:
        """Block until the next request may be issued. Returns the time slept."""
        slept = 0.0
        now = self._clock()
        if self._last_request is not None:
            elapsed = now - self._last_request
            if elapsed < self.min_interval:
                slept = self.min_interval - elapsed
                logger.debug(f"Pacing MusicBrainz request, sleeping {slept:.2f}s")
                self._sleep(slept)
                now = self._clock()
        self._last_request = now
        return slept


class MusicBrainzClient:
    """Serial client for the MusicBrainz JSON web service.

    Owns the bounded retry loop: transport errors, HTTP 429 and HTTP 5xx are
    retried immediately up to max_attempts in total. Everything else is
    classified once and returned as a QueryResult; no network error escapes.
    """

    def __init__(self,
                 user_agent: str,
                 base_url: str = DEFAULT_BASE_URL,
                 timeout: float = 10.0,
                 max_attempts: int = 5,
                 retry_delay: float = 0.0,
                 search_limit: int = 25,
                 pacer: Optional[RequestPacer] = None,
                 session: Optional[requests.Session] = None):
        """Initialize the client.

        Args:
            user_agent: User-Agent header; MusicBrainz rejects anonymous clients
            base_url: Web service root, without trailing slash
            timeout: Per-request timeout in seconds
            max_attempts: Total attempts per query, first one included
            retry_delay: Fixed pause between attempts in seconds
            search_limit: Number of recordings requested per text search
            pacer: Request pacer; a 1 request/second pacer by default
            session: Optional pre-configured requests session
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.search_limit = search_limit
        self.pacer = pacer if pacer is not None else RequestPacer()

        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': user_agent,
            'Accept': 'application/json',
        })

        self.request_count = 0
        self.retry_count = 0

    def query(self, kind: RequestKind, params: Dict[str, Any]) -> QueryResult:
        """Issue one categorized query, retrying transient failures.

        Args:
            kind: Which web service resource to query
            params: Query string parameters, fmt=json is added

        Returns:
            QueryResult describing the outcome
        """
        url = f"{self.base_url}/{kind.value}"
        request_params = dict(params)
        request_params['fmt'] = 'json'

        last_error: Optional[str] = None
        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                self.retry_count += 1
                if self.retry_delay > 0:
                    time.sleep(self.retry_delay)

            self.pacer.wait()
            self.request_count += 1

            try:
                response = self.session.get(url, params=request_params, timeout=self.timeout)
            except requests.RequestException as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(f"MusicBrainz {kind.value} request failed "
                               f"(attempt {attempt}/{self.max_attempts}): {last_error}")
                continue

            status = response.status_code
            if status == 429 or status >= 500:
                last_error = f"HTTP {status}"
                logger.warning(f"MusicBrainz {kind.value} request returned {status} "
                               f"(attempt {attempt}/{self.max_attempts})")
                continue

            if status == 404:
                logger.debug(f"MusicBrainz {kind.value} lookup found nothing: {params}")
                return QueryResult(QueryStatus.NO_MATCH, attempts=attempt, error=f"HTTP {status}")

            if status < 200 or status >= 300:
                logger.error(f"MusicBrainz {kind.value} request rejected with {status}: {params}")
                return QueryResult(QueryStatus.FATAL_FAILURE, attempts=attempt, error=f"HTTP {status}")

            try:
                payload = response.json()
            except ValueError as e:
                logger.warning(f"Unparseable MusicBrainz {kind.value} response: {e}")
                return QueryResult(QueryStatus.NO_MATCH, attempts=attempt, error="malformed response")

            if not isinstance(payload, dict):
                logger.warning(f"Unexpected MusicBrainz {kind.value} response type: {type(payload).__name__}")
                return QueryResult(QueryStatus.NO_MATCH, attempts=attempt, error="malformed response")

            return QueryResult(QueryStatus.OK, payload=payload, attempts=attempt)

        logger.error(f"MusicBrainz {kind.value} request gave up after {self.max_attempts} attempts: {last_error}")
        return QueryResult(QueryStatus.TRANSIENT_FAILURE, attempts=self.max_attempts, error=last_error)

    def lookup_url(self, resource: str) -> QueryResult:
        """Look up recordings that link to an external resource URL."""
        return self.query(RequestKind.URL_LOOKUP, {
            'resource': resource,
            'inc': 'recording-rels',
        })

    def search_recordings(self, query: str) -> QueryResult:
        """Run a Lucene recording search."""
        return self.query(RequestKind.RECORDING_SEARCH, {
            'query': query,
            'limit': self.search_limit,
        })

    def linked_recordings(self,
                          payload: Dict[str, Any],
                          default_title: Optional[str] = None,
                          default_artist: Optional[str] = None) -> List[RecordingCandidate]:
        """Parse the recordings linked from a URL lookup payload.

        Relation records usually carry no artist credit; default_title and
        default_artist fill the gaps. Relations that do not target a recording,
        or whose recording is still incomplete, are skipped. Service order is
        kept.
        """
        candidates: List[RecordingCandidate] = []
        relations = payload.get('relations') if isinstance(payload, dict) else None
        if not isinstance(relations, list):
            return candidates

        for relation in relations:
            if not isinstance(relation, dict):
                continue
            candidate = parse_recording(relation.get('recording'),
                                        default_title=default_title,
                                        default_artist=default_artist)
            if candidate:
                candidates.append(candidate)
        return candidates

    def recording_candidates(self, payload: Dict[str, Any]) -> List[RecordingCandidate]:
        """Parse a recording search payload into candidates.

        Records without id, title or a credited artist are skipped.
        """
        candidates: List[RecordingCandidate] = []
        recordings = payload.get('recordings') if isinstance(payload, dict) else None
        if not isinstance(recordings, list):
            return candidates

        for record in recordings:
            candidate = parse_recording(record)
            if candidate:
                candidates.append(candidate)
        return candidates


def primary_artist_name(record: Dict[str, Any]) -> Optional[str]:
    """Credited name of the first artist on a recording record."""
    credits = record.get('artist-credit')
    if not isinstance(credits, list) or not credits:
        return None
    first = credits[0]
    if not isinstance(first, dict):
        return None
    name = first.get('name')
    if not name and isinstance(first.get('artist'), dict):
        name = first['artist'].get('name')
    return name or None


def parse_recording(record: Any,
                    default_title: Optional[str] = None,
                    default_artist: Optional[str] = None) -> Optional[RecordingCandidate]:
    """Convert a MusicBrainz recording record to a RecordingCandidate.

    Args:
        record: Raw recording object
        default_title: Title to use when the record carries none
        default_artist: Artist to use when the record carries no artist credit

    Returns:
        RecordingCandidate, or None if required fields are missing
    """
    if not isinstance(record, dict):
        return None

    recording_id = record.get('id')
    title = record.get('title') or default_title
    artist = primary_artist_name(record) or default_artist

    if not (isinstance(recording_id, str) and recording_id):
        return None
    if not (isinstance(title, str) and title):
        return None
    if not (isinstance(artist, str) and artist):
        return None

    return RecordingCandidate(
        recording_id=recording_id,
        title=title,
        primary_artist_name=artist,
    )

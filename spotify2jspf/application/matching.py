from typing import Iterable, List, Optional

from spotify2jspf.domain.entities import RecordingCandidate, Resolved, Unresolved, ResolutionOutcome


def _is_well_formed(candidate: object) -> bool:
    """A usable candidate has a non-empty id, title and primary artist."""
    if not isinstance(candidate, RecordingCandidate):
        return False
    for value in (candidate.recording_id, candidate.title, candidate.primary_artist_name):
        if not isinstance(value, str) or not value:
            return False
    return True


class MatchSelector:
    """Chooses one recording among the candidates returned by a lookup.

    Selection rules:
    1. Exact match: title and primary artist equal the wanted values byte for
       byte (case-sensitive). The first exact candidate in input order wins.
    2. Fallback: with no exact match, the first well-formed candidate is
       returned as an inexact match. Text search is a substring search, so the
       first hit is usually another mix or edit of the same work.
    3. No well-formed candidate: Unresolved.
    """

    def select(self,
               candidates: Optional[Iterable[RecordingCandidate]],
               want_artist: str,
               want_title: str,
               strategy: Optional[str] = None) -> ResolutionOutcome:
        """Select the best candidate for the wanted artist and title.

        Args:
            candidates: Candidates in the order the database returned them
            want_artist: Artist name from the source track
            want_title: Track title from the source track
            strategy: Name of the lookup strategy, recorded on the outcome

        Returns:
            Resolved(exact=True|False) or Unresolved("no_match")
        """
        usable: List[RecordingCandidate] = [c for c in (candidates or []) if _is_well_formed(c)]
        if not usable:
            return Unresolved(reason="no_match")

        for candidate in usable:
            if candidate.title == want_title and candidate.primary_artist_name == want_artist:
                return Resolved(candidate=candidate, exact=True, strategy=strategy)

        return Resolved(candidate=usable[0], exact=False, strategy=strategy)


def calculate_match_rate(outcomes: List[ResolutionOutcome]) -> float:
    """Share of outcomes that resolved to a recording (0.0 to 1.0)."""
    if not outcomes:
        return 0.0
    resolved = sum(1 for o in outcomes if isinstance(o, Resolved))
    return resolved / len(outcomes)


def get_match_statistics(outcomes: List[ResolutionOutcome]) -> dict:
    """Breakdown of outcomes by kind and by producing strategy."""
    total = len(outcomes)
    exact = sum(1 for o in outcomes if isinstance(o, Resolved) and o.exact)
    inexact = sum(1 for o in outcomes if isinstance(o, Resolved) and not o.exact)

    by_strategy = {}
    for outcome in outcomes:
        if isinstance(outcome, Resolved):
            key = outcome.strategy or "unknown"
        else:
            key = outcome.reason
        by_strategy[key] = by_strategy.get(key, 0) + 1

    return {
        "total": total,
        "exact": exact,
        "inexact": inexact,
        "unresolved": total - exact - inexact,
        "match_rate": calculate_match_rate(outcomes),
        "by_strategy": by_strategy,
    }

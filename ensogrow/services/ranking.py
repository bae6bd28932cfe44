"""Recommendation ranking."""
import re
from typing import Callable, List, Optional, Sequence, TypeVar

# Maximum recommendations returned from one survey
MAX_RECOMMENDATIONS = 5

_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")

T = TypeVar("T")


def parse_success_rate(text: Optional[str]) -> Optional[int]:
    """Leading integer of a success-rate string ("85%" -> 85), or None."""
    if not text:
        return None
    match = _LEADING_INT_RE.match(str(text))
    if not match:
        return None
    return int(match.group(1))


def rank_recommendations(
    candidates: Sequence[T],
    limit: int = MAX_RECOMMENDATIONS,
    rate_of: Callable[[T], Optional[str]] = lambda plant: plant.success_rate,
) -> List[T]:
    """
    Order candidates by success rate, highest first, and keep the top ``limit``.

    Unparsable rates sort last. The sort is stable, so candidates with equal
    rates keep their original relative order.
    """
    def sort_key(candidate: T):
        rate = parse_success_rate(rate_of(candidate))
        return (rate is None, -(rate or 0))

    return sorted(candidates, key=sort_key)[:limit]

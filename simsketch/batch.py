"""
Per-element accept/reject fold for lenient batch operations.

Lenient methods run their inputs through fold_valid() instead of
scattering type checks through their loops. Accepted elements keep their
original position; rejected ones are reported with a reason so callers
(and the debug log) can see what was dropped.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterable, List, Optional, Tuple, TypeVar

T = TypeVar("T")

# Returns None when the element is acceptable, otherwise the rejection reason
Check = Callable[[Any], Optional[str]]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rejected:
    index: int
    value: Any
    reason: str


@dataclass
class FoldResult(Generic[T]):
    """Accepted (index, element) pairs plus the rejected elements."""
    accepted: List[Tuple[int, T]] = field(default_factory=list)
    rejected: List[Rejected] = field(default_factory=list)

    @property
    def values(self) -> List[T]:
        return [v for _, v in self.accepted]

    @property
    def ok(self) -> bool:
        return not self.rejected


def fold_valid(items: Iterable[Any], check: Check, *, context: str = "batch") -> FoldResult[Any]:
    """
    Partition *items* into accepted and rejected elements.

    Args:
        items: Elements to check, in order
        check: Returns None for a valid element, else a reason string
        context: Label used when logging rejections

    Returns:
        FoldResult with accepted (index, value) pairs and Rejected records
    """
    result: FoldResult[Any] = FoldResult()
    for i, item in enumerate(items):
        reason = check(item)
        if reason is None:
            result.accepted.append((i, item))
        else:
            result.rejected.append(Rejected(index=i, value=item, reason=reason))

    if result.rejected:
        logger.debug(
            "%s: skipped %d invalid element(s), first: %s",
            context, len(result.rejected), result.rejected[0].reason,
        )
    return result


# ----------------------------
# Common checks
# ----------------------------

def is_str(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return None
    return f"expected str, got {type(value).__name__}"


def is_int(value: Any) -> Optional[str]:
    if isinstance(value, int) and not isinstance(value, bool):
        return None
    return f"expected int, got {type(value).__name__}"

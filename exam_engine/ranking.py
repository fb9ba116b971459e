from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

T = TypeVar("T")


def rank_key(points: float, total_marks: Optional[float], name: str) -> tuple:
    """
    Sort key for the cohort comparator:
      1. higher mean points first
      2. higher total marks first, a missing total below any number
      3. name ascending
    """
    has_total = 0 if total_marks is not None else 1
    return (-points, has_total, -(total_marks or 0), name.casefold(), name)


def assign_ranks(items: Iterable[T],
                 points: Callable[[T], Optional[float]],
                 total_marks: Callable[[T], Optional[float]] = lambda item: None,
                 name: Callable[[T], str] = lambda item: "") -> List[Tuple[int, T]]:
    """
    Competition ranking with gaps ('1,1,3,4').

    Items whose points are None are dropped: they take no rank slot and do
    not count towards the cohort size. Two neighbours share a rank only when
    both their points and their totals are equal; the name only orders them.

    Returns a list of (rank, item) in ranked order.
    """
    rankable = [item for item in items if points(item) is not None]
    ordered = sorted(rankable, key=lambda item: rank_key(points(item), total_marks(item), name(item)))

    ranked: List[Tuple[int, T]] = []
    for i, item in enumerate(ordered):
        if i > 0:
            prev_rank, prev = ranked[-1]
            if points(item) == points(prev) and total_marks(item) == total_marks(prev):
                ranked.append((prev_rank, item))
                continue
        ranked.append((i + 1, item))
    return ranked


def rank_of(ranked: List[Tuple[int, T]], predicate: Callable[[T], bool]) -> Optional[int]:
    for rank, item in ranked:
        if predicate(item):
            return rank
    return None

from decimal import Decimal, ROUND_HALF_UP
from typing import List, Sequence, Tuple

from exam_engine.models import GradePoint, ScoreKind, ScoreOutcome


# ------------------------
# Rounding
# ------------------------
def round_half_up(x: float) -> int:
    return int(Decimal(str(x)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ------------------------
# Grading table
# ------------------------
MAX_SCORE = 100

# (minimum score, grade, points), highest band first, over 0..MAX_SCORE.
KNEC_BANDS: List[Tuple[float, str, int]] = [
    (80, "A", 12),
    (75, "A-", 11),
    (70, "B+", 10),
    (65, "B", 9),
    (60, "B-", 8),
    (55, "C+", 7),
    (50, "C", 6),
    (45, "C-", 5),
    (40, "D+", 4),
    (35, "D", 3),
    (30, "D-", 2),
    (0, "E", 1),
]

ABSENT_GRADE = GradePoint("X", 0, "Absent")
MALPRACTICE_GRADE = GradePoint("Y", 0, "Malpractice")
NO_GRADE = GradePoint("-", 0, "N/A")


def remarks_for_points(points: int) -> str:
    if points >= 10:
        return "Excellent"
    elif points >= 8:
        return "Very Good"
    elif points >= 7:
        return "Good"
    elif points >= 5:
        return "Fair"
    return "Needs Improvement"


class GradingScale:
    """
    Ordered score bands where the first band with ``score >= minimum`` wins.

    The order is checked here rather than trusted: minimums must be strictly
    descending and the last band must start at 0 so every score in range
    resolves to a band.
    """

    def __init__(self, bands: Sequence[Tuple[float, str, int]], max_score: float = MAX_SCORE):
        bands = [tuple(b) for b in bands]
        if not bands:
            raise ValueError("A grading scale needs at least one band")
        for (higher, _, _), (lower, _, _) in zip(bands, bands[1:]):
            if not higher > lower:
                raise ValueError(
                    f"Grading bands must have strictly descending minimums (got {higher} before {lower})."
                )
        if bands[0][0] > max_score:
            raise ValueError(f"The top grading band starts above the maximum score {max_score}.")
        if bands[-1][0] != 0:
            raise ValueError(f"The last grading band must start at 0 (got {bands[-1][0]}).")
        self.bands = bands
        self.max_score = max_score

    @property
    def grades(self) -> List[str]:
        return [grade for _, grade, _ in self.bands]

    def empty_distribution(self) -> dict:
        return {grade: 0 for grade in self.grades}

    def resolve(self, score) -> GradePoint:
        outcome = ScoreOutcome.from_raw(score)
        if outcome.kind is ScoreKind.ABSENT:
            return ABSENT_GRADE
        if outcome.kind is ScoreKind.MALPRACTICE:
            return MALPRACTICE_GRADE
        if outcome.kind is ScoreKind.UNRECORDED:
            return NO_GRADE

        value = outcome.value
        if value < 0 or value > self.max_score:
            return NO_GRADE

        for minimum, grade, points in self.bands:
            if value >= minimum:
                return GradePoint(grade, points, remarks_for_points(points))

        # unreachable: the last band starts at 0
        return NO_GRADE


DEFAULT_SCALE = GradingScale(KNEC_BANDS)


def resolve_grade(score, scale: GradingScale = DEFAULT_SCALE) -> GradePoint:
    """
    score: raw mark code (0..100, -1, -2, None) or a ScoreOutcome
    returns: GradePoint(grade, points, remarks)
    """
    return scale.resolve(score)

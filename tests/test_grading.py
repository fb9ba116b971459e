import pytest

from exam_engine.grading import (
    DEFAULT_SCALE, KNEC_BANDS, GradingScale, remarks_for_points, resolve_grade, round_half_up,
)
from exam_engine.models import ABSENT, MALPRACTICE, UNRECORDED, ScoreOutcome


@pytest.mark.parametrize("score", [80, 85, 99.5, 100])
def test_top_band_is_a(score):
    assert resolve_grade(score).grade == "A"


@pytest.mark.parametrize("score", [0, 12, 29, 29.9])
def test_bottom_band_is_e(score):
    gp = resolve_grade(score)
    assert gp.grade == "E"
    assert gp.points == 1


@pytest.mark.parametrize("minimum, grade, points", [b for b in KNEC_BANDS if b[0] > 0])
def test_every_threshold_boundary(minimum, grade, points):
    at = resolve_grade(minimum)
    assert (at.grade, at.points) == (grade, points)

    below = resolve_grade(minimum - 1)
    assert below.points == points - 1


def test_a_minus_just_below_eighty():
    assert resolve_grade(79).grade == "A-"


def test_sentinel_codes():
    absent = resolve_grade(-1)
    assert (absent.grade, absent.points, absent.remarks) == ("X", 0, "Absent")

    malpractice = resolve_grade(-2)
    assert (malpractice.grade, malpractice.points, malpractice.remarks) == ("Y", 0, "Malpractice")

    assert resolve_grade(ABSENT) == absent
    assert resolve_grade(MALPRACTICE) == malpractice


@pytest.mark.parametrize("score", [None, UNRECORDED, 101, -5])
def test_unrecorded_or_out_of_range(score):
    gp = resolve_grade(score)
    assert (gp.grade, gp.points, gp.remarks) == ("-", 0, "N/A")


def test_accepts_score_outcome():
    assert resolve_grade(ScoreOutcome.numeric(72)).grade == "B+"


@pytest.mark.parametrize("points, remark", [
    (12, "Excellent"), (10, "Excellent"), (9, "Very Good"), (8, "Very Good"),
    (7, "Good"), (6, "Fair"), (5, "Fair"), (4, "Needs Improvement"), (1, "Needs Improvement"),
])
def test_remarks_bands(points, remark):
    assert remarks_for_points(points) == remark


def test_resolved_remarks_follow_points():
    assert resolve_grade(71).remarks == "Excellent"
    assert resolve_grade(62).remarks == "Very Good"
    assert resolve_grade(56).remarks == "Good"
    assert resolve_grade(46).remarks == "Fair"
    assert resolve_grade(10).remarks == "Needs Improvement"


def test_scale_rejects_unsorted_bands():
    with pytest.raises(ValueError):
        GradingScale([(50, "C", 6), (80, "A", 12), (0, "E", 1)])


def test_scale_rejects_duplicate_minimums():
    with pytest.raises(ValueError):
        GradingScale([(80, "A", 12), (80, "A-", 11), (0, "E", 1)])


def test_scale_requires_catch_all_band():
    with pytest.raises(ValueError):
        GradingScale([(80, "A", 12), (30, "D-", 2)])


def test_scale_rejects_empty_table():
    with pytest.raises(ValueError):
        GradingScale([])


def test_custom_scale():
    scale = GradingScale([(50, "P", 1), (0, "F", 0)])
    assert resolve_grade(50, scale).grade == "P"
    assert resolve_grade(49, scale).grade == "F"
    assert scale.empty_distribution() == {"P": 0, "F": 0}


def test_default_distribution_has_twelve_grades():
    dist = DEFAULT_SCALE.empty_distribution()
    assert len(dist) == 12
    assert set(dist.values()) == {0}
    assert "X" not in dist


@pytest.mark.parametrize("value, expected", [(59.2, 59), (88.5, 89), (73.5, 74), (62.4999, 62), (0.5, 1), (0, 0)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_scale_max_score_bounds_the_range():
    scale = GradingScale([(25, "P", 1), (0, "F", 0)], max_score=50)
    assert resolve_grade(50, scale).grade == "P"
    assert resolve_grade(51, scale).grade == "-"
    assert DEFAULT_SCALE.max_score == 100


def test_scale_rejects_band_above_max_score():
    with pytest.raises(ValueError):
        GradingScale([(60, "P", 1), (0, "F", 0)], max_score=50)

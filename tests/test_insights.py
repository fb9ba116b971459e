import json

import pytest

from exam_engine.cohort import generate_class_term_analysis
from exam_engine.insights import (
    InsightsUnavailable, build_insight_summary, request_insights, strip_code_fence,
)


@pytest.fixture
def north_analysis(school, term1):
    return generate_class_term_analysis(term1, school, class_id="C02", stream="North")


def test_summary_payload(north_analysis):
    summary = build_insight_summary(north_analysis)

    assert summary["term"] == {"name": "Term 1", "year": 2025}
    assert summary["group"] == {"name": "Form 2", "stream": "North"}
    assert summary["summary"] == {
        "totalStudents": 3,
        "overallMeanPoints": 6.667,
        "overallMeanGrade": "B-",
    }
    assert summary["overallGradeDistribution"]["A"] == 1
    # JSON-safe, no student names
    encoded = json.dumps(summary)
    assert "Charlie" not in encoded


def test_subject_ranking_sorted_by_mean(north_analysis):
    ranking = build_insight_summary(north_analysis)["subjectRanking"]
    assert ranking == [
        {"subjectName": "English", "meanScore": 71.0, "studentCount": 2},
        {"subjectName": "Kiswahili", "meanScore": 67.0, "studentCount": 2},
        {"subjectName": "Mathematics", "meanScore": 62.67, "studentCount": 3},
    ]


def test_whole_school_group_defaults_to_all_streams(school, term1):
    summary = build_insight_summary(generate_class_term_analysis(term1, school))
    assert summary["group"] == {"name": "Whole School", "stream": "All"}


def test_decimals_follow_config(monkeypatch, north_analysis):
    monkeypatch.setenv("EXAM_ENGINE_INSIGHT_POINTS_DECIMALS", "1")
    assert build_insight_summary(north_analysis)["summary"]["overallMeanPoints"] == 6.7


@pytest.mark.parametrize("raw, expected", [
    ("```markdown\n## Overview\nGood term.\n```", "## Overview\nGood term."),
    ("```\nplain fenced\n```", "plain fenced"),
    ("  ## Already clean  ", "## Already clean"),
    ("```md\n```", "```md\n```"),
])
def test_strip_code_fence(raw, expected):
    assert strip_code_fence(raw) == expected


def test_request_insights_passes_summary(north_analysis):
    seen = []

    def summarizer(summary):
        seen.append(summary)
        return "```markdown\n**Strong English results.**\n```"

    text = request_insights(north_analysis, summarizer)

    assert text == "**Strong English results.**"
    assert seen[0]["summary"]["totalStudents"] == 3


def test_request_insights_without_analysis():
    def summarizer(summary):
        raise AssertionError("should not be called")

    with pytest.raises(InsightsUnavailable):
        request_insights(None, summarizer)


def test_summarizer_errors_propagate(north_analysis):
    def summarizer(summary):
        raise RuntimeError("service down")

    with pytest.raises(RuntimeError, match="service down"):
        request_insights(north_analysis, summarizer)

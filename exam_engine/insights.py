"""
Boundary towards the free-text summarizer.

The summarizer itself lives outside this package: it is any callable that
takes the summary dict built here and returns markdown text.
"""
import logging
import re
from typing import Any, Callable, Dict, Optional

from exam_engine import config
from exam_engine.models import ClassTermAnalysis

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"^```(\w*)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)


class InsightsUnavailable(Exception):
    """Raised when there is no analysis to summarise."""


def build_insight_summary(analysis: ClassTermAnalysis) -> Dict[str, Any]:
    """JSON-safe digest of a class analysis; no student names are included."""
    points_dp = config.INSIGHT_POINTS_DECIMALS
    score_dp = config.INSIGHT_SCORE_DECIMALS

    subjects = sorted(analysis.subject_analyses, key=lambda s: s.mean_score or 0, reverse=True)

    return {
        "term": {"name": analysis.term_name, "year": analysis.year},
        "group": {
            "name": analysis.class_name,
            "stream": analysis.stream or "All",
        },
        "summary": {
            "totalStudents": analysis.total_students,
            "overallMeanPoints": round(analysis.overall_mean_points, points_dp),
            "overallMeanGrade": analysis.overall_mean_grade,
        },
        "overallGradeDistribution": dict(analysis.grade_distribution),
        "subjectRanking": [
            {
                "subjectName": s.subject_name,
                "meanScore": round(s.mean_score, score_dp) if s.mean_score is not None else None,
                "studentCount": s.student_count,
            }
            for s in subjects
        ],
    }


def strip_code_fence(text: str) -> str:
    text = text.strip()
    match = FENCE_RE.match(text)
    if match and match.group(2):
        return match.group(2).strip()
    return text


def request_insights(analysis: Optional[ClassTermAnalysis],
                     summarizer: Callable[[Dict[str, Any]], str]) -> str:
    if analysis is None:
        raise InsightsUnavailable(
            "No data available to generate insights. Select a class with exam data for the term."
        )
    summary = build_insight_summary(analysis)
    logger.info("Requesting insights for %s %s", analysis.class_name, analysis.term_name)
    return strip_code_fence(summarizer(summary))

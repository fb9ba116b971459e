"""
Cohort-level views built from many student reports.

Every view here recomputes its reports from the snapshot; nothing is cached
between calls, so two calls over the same dataset give equal results.
"""
import logging
from typing import List, Optional

import numpy as np

from exam_engine.grading import DEFAULT_SCALE, resolve_grade, round_half_up
from exam_engine.models import (
    UNRECORDED, BroadsheetEntry, ClassTermAnalysis, MeritListEntry,
    RankedSubjectStudent, SchoolDataset, StudentTermSummary, Subject,
    SubjectClassAnalysis, Term,
)
from exam_engine.ranking import assign_ranks
from exam_engine.reports import build_student_report, summarize_student_term

logger = logging.getLogger(__name__)


def stream_names(class_id: str, dataset: SchoolDataset) -> List[str]:
    """Distinct non-empty streams of a class, in order of first appearance."""
    seen = []
    for s in dataset.students:
        if s.class_id == class_id and s.stream and s.stream not in seen:
            seen.append(s.stream)
    return seen


# ------------------------
# Merit list
# ------------------------
def generate_merit_list(term: Term, dataset: SchoolDataset, class_id: Optional[str] = None) -> List[MeritListEntry]:
    """
    Rank every student of the selection (one class, or the whole school)
    together, regardless of stream. Students without graded work are left out.
    """
    students = [s for s in dataset.students if class_id is None or s.class_id == class_id]
    reports = [build_student_report(s, term, dataset) for s in students]
    reports = [r for r in reports if r is not None]

    ranked = assign_ranks(
        reports,
        points=lambda r: r.mean_term_points,
        total_marks=lambda r: r.total_weighted_marks,
        name=lambda r: r.student.name,
    )
    logger.info("Merit list for %s (%s): %d of %d students ranked",
                term.name, class_id or "all classes", len(ranked), len(students))
    return [MeritListEntry(rank=rank, report=report) for rank, report in ranked]


# ------------------------
# Broadsheet
# ------------------------
def generate_class_broadsheet(class_id: str, term: Term, dataset: SchoolDataset) -> List[BroadsheetEntry]:
    """One row per ranked student with a column for each active subject."""
    students = [s for s in dataset.students if s.class_id == class_id]
    if not students:
        return []

    active = dataset.active_subjects
    rows = []
    for student in students:
        report = build_student_report(student, term, dataset)
        if report is None or report.mean_term_points is None:
            continue
        scores = {}
        for subject in active:
            result = report.result_for(subject.id)
            scores[subject.id] = result.score if result else UNRECORDED
        rows.append((student, report, scores))

    ranked = assign_ranks(
        rows,
        points=lambda row: row[1].mean_term_points,
        total_marks=lambda row: row[1].total_weighted_marks,
        name=lambda row: row[0].name,
    )

    return [
        BroadsheetEntry(
            student_id=student.id,
            admission_number=student.admission_number,
            student_name=student.name,
            class_id=student.class_id,
            stream=student.stream,
            subject_scores=scores,
            total_weighted_marks=report.total_weighted_marks,
            mean_weighted_score=report.mean_weighted_score,
            mean_term_points=report.mean_term_points,
            overall_term_grade=report.overall_term_grade,
            rank=rank,
        )
        for rank, (student, report, scores) in ranked
    ]


# ------------------------
# Class / subject analysis
# ------------------------
def analyse_subject(subject: Subject, summaries: List[StudentTermSummary]) -> Optional[SubjectClassAnalysis]:
    """
    Subject-local statistics for a cohort. Returns None when no student of
    the cohort has any outcome recorded for the subject.
    """
    recorded = [
        (s.student, s.subject_scores[subject.id])
        for s in summaries
        if subject.id in s.subject_scores and s.subject_scores[subject.id].is_recorded
    ]
    if not recorded:
        return None

    distribution = DEFAULT_SCALE.empty_distribution()
    real = [(student, outcome.value) for student, outcome in recorded if outcome.is_real]
    if not real:
        return SubjectClassAnalysis(
            subject_id=subject.id,
            subject_name=subject.name,
            mean_score=None,
            grade_distribution=distribution,
            ranked_students=[],
            student_count=len(recorded),
        )

    mean_score = float(np.mean([score for _, score in real]))
    for _, score in real:
        grade = resolve_grade(score).grade
        if grade in distribution:
            distribution[grade] += 1

    ranked = assign_ranks(
        real,
        points=lambda pair: pair[1],
        name=lambda pair: pair[0].name,
    )
    ranked_students = [
        RankedSubjectStudent(
            student_id=student.id,
            student_name=student.name,
            admission_number=student.admission_number,
            score=score,
            grade=resolve_grade(score).grade,
            rank=rank,
        )
        for rank, (student, score) in ranked
    ]

    return SubjectClassAnalysis(
        subject_id=subject.id,
        subject_name=subject.name,
        mean_score=mean_score,
        grade_distribution=distribution,
        ranked_students=ranked_students,
        student_count=len(recorded),
    )


def generate_class_term_analysis(term: Term,
                                 dataset: SchoolDataset,
                                 class_id: Optional[str] = None,
                                 stream: Optional[str] = None) -> Optional[ClassTermAnalysis]:
    """
    Statistical summary of a class (or the whole school when class_id is
    None), optionally narrowed to one stream.

    Returns None when the selection has no students, or none of them has
    graded work for the term.
    """
    school_class = dataset.class_by_id(class_id) if class_id else None
    students = [
        s for s in dataset.students
        if (class_id is None or s.class_id == class_id) and (stream is None or s.stream == stream)
    ]
    if not students:
        return None

    summaries = [summarize_student_term(s, term, dataset) for s in students]
    summaries = [s for s in summaries if s.mean_term_points is not None]
    if not summaries:
        logger.debug("No graded work for %s in %s", class_id or "whole school", term.name)
        return None

    # ---- Whole-cohort figures ----
    overall_mean_points = float(np.mean([s.mean_term_points for s in summaries]))
    average_mean_score = float(np.mean([s.mean_weighted_score or 0 for s in summaries]))
    overall_mean_grade = resolve_grade(round_half_up(average_mean_score)).grade

    distribution = DEFAULT_SCALE.empty_distribution()
    for s in summaries:
        if s.overall_term_grade in distribution:
            distribution[s.overall_term_grade] += 1

    # ---- Subject by subject ----
    subject_analyses = []
    for subject in dataset.active_subjects:
        analysis = analyse_subject(subject, summaries)
        if analysis is not None:
            subject_analyses.append(analysis)

    return ClassTermAnalysis(
        class_id=class_id or "all",
        class_name=school_class.name if school_class else "Whole School",
        stream=stream,
        term_id=term.id,
        term_name=term.name,
        year=term.year,
        overall_mean_points=overall_mean_points,
        overall_mean_grade=overall_mean_grade,
        grade_distribution=distribution,
        total_students=len(summaries),
        subject_analyses=subject_analyses,
    )


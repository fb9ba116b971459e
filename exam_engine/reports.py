import logging
import re
from typing import List, Optional, Tuple

from exam_engine import config
from exam_engine.aggregation import aggregate_subject_score, session_outcomes
from exam_engine.grading import DEFAULT_SCALE, resolve_grade, round_half_up
from exam_engine.models import (
    PerformanceDatapoint, SchoolDataset, Student, StudentReport, StudentTermSummary,
    Subject, SubjectExamScore, SubjectTermResult, Term, User, UserRole,
)
from exam_engine.ranking import assign_ranks, rank_of

logger = logging.getLogger(__name__)


# ------------------------
# Attribution helpers
# ------------------------
def get_initials(name: str) -> str:
    parts = (name or "").split()
    if not parts:
        return ""
    if len(parts) == 1:
        return parts[0][:2].upper()
    return (parts[0][0] + parts[-1][0]).upper()


def find_subject_teacher(class_id: str, subject_id: str, users: List[User]) -> Optional[User]:
    return next(
        (u for u in users if u.role is UserRole.TEACHER and u.teaches(class_id, subject_id)),
        None,
    )


def find_class_teacher(class_id: str, users: List[User]) -> Optional[User]:
    return next((u for u in users if u.role is UserRole.TEACHER and u.teaches(class_id)), None)


def find_principal(users: List[User]) -> Optional[User]:
    keyword = config.PRINCIPAL_KEYWORD.lower()
    return next((u for u in users if u.role is UserRole.ADMIN and keyword in u.name.lower()), None)


def term_comments(student: Student, mean_term_points: Optional[float]) -> Tuple[str, str]:
    """
    returns: (principal comment, class teacher comment)
    Only the point bands matter; the wording is report copy.
    """
    first = student.first_name

    if mean_term_points is None:
        return ("Satisfactory progress. Keep up the effort.",
                f"{first} has shown consistent effort. Focus on areas of improvement for even better results.")

    if mean_term_points >= 10:
        return ("Excellent performance! Your hard work is commendable. Aim for the stars!",
                f"Outstanding work, {first}! Your dedication is inspiring. Keep challenging yourself.")
    elif mean_term_points >= 7:
        return ("Very good progress. Continue to strive for excellence.",
                f"Well done, {first}! You are making great strides. Maintain this momentum.")
    elif mean_term_points >= 5:
        return ("Good effort. With more focus, you can achieve even better.",
                f"{first} is showing good potential. Consistent revision will yield significant improvements.")
    elif mean_term_points > 0:
        return ("There's room for improvement. Let's work together to identify and address challenges.",
                f"{first}, let's focus on building stronger foundations in key areas. I'm here to help.")
    return ("Significant effort is required. Please see the class teacher for guidance.",
            f"{first}, we need to discuss strategies for improvement. Please make time to see me.")


# ------------------------
# Subject results
# ------------------------
def subjects_for_student(student: Student, dataset: SchoolDataset) -> List[Subject]:
    active = dataset.active_subjects
    if student.subjects:
        chosen = set(student.subjects)
        return [s for s in active if s.id in chosen]
    return active


def build_subject_results(student: Student, term: Term, dataset: SchoolDataset) -> List[SubjectTermResult]:
    sessions = dataset.sessions_for_term(term)
    results = []

    for subject in subjects_for_student(student, dataset):
        pairs = session_outcomes(student, subject, sessions, dataset)

        components = []
        for session, outcome in pairs:
            gp = resolve_grade(outcome)
            components.append(SubjectExamScore(
                exam_session_id=session.id,
                exam_session_name=session.name,
                score=outcome,
                grade=gp.grade,
                points=gp.points,
                remarks=gp.remarks,
            ))

        final = aggregate_subject_score([(o, s.weight) for s, o in pairs], term.calculation_mode)
        gp = resolve_grade(final)
        teacher = find_subject_teacher(student.class_id, subject.id, dataset.users)

        results.append(SubjectTermResult(
            subject_id=subject.id,
            subject_name=subject.name,
            score=final,
            grade=gp.grade,
            points=gp.points,
            remarks=gp.remarks,
            component_scores=tuple(components),
            teacher_initials=get_initials(teacher.name) if teacher else config.MISSING_TEACHER_INITIALS,
        ))

    return results


def term_aggregates(results: List[SubjectTermResult]) -> dict:
    """
    Marks totals count only subjects with a real score; mean points count
    every subject with any recorded outcome, so Absent/Malpractice subjects
    pull the points mean down at 0 points while staying out of the totals.
    """
    real_scores = [r.score.value for r in results if r.score.is_real]
    recorded = [r for r in results if r.score.is_recorded]

    if real_scores:
        total = sum(real_scores)
        max_total = DEFAULT_SCALE.max_score * len(real_scores)
        mean_score = total / max_total * 100
    else:
        total = None
        max_total = 0
        mean_score = None

    mean_points = sum(r.points for r in recorded) / len(recorded) if recorded else None
    overall = resolve_grade(round_half_up(mean_score) if mean_score is not None else None).grade

    return {
        "total_weighted_marks": total,
        "max_total_marks": max_total,
        "mean_weighted_score": mean_score,
        "mean_term_points": mean_points,
        "overall_term_grade": overall,
    }


def _summary_from_results(student: Student, results: List[SubjectTermResult]) -> StudentTermSummary:
    agg = term_aggregates(results)
    return StudentTermSummary(
        student=student,
        mean_term_points=agg["mean_term_points"],
        overall_term_grade=agg["overall_term_grade"],
        total_weighted_marks=agg["total_weighted_marks"],
        mean_weighted_score=agg["mean_weighted_score"],
        subject_scores={r.subject_id: r.score for r in results},
    )


def summarize_student_term(student: Student, term: Term, dataset: SchoolDataset) -> StudentTermSummary:
    """Rank-free term aggregates, used for peers and cohort statistics."""
    return _summary_from_results(student, build_subject_results(student, term, dataset))


def rank_summaries(summaries: List[StudentTermSummary]):
    return assign_ranks(
        summaries,
        points=lambda s: s.mean_term_points,
        total_marks=lambda s: s.total_weighted_marks,
        name=lambda s: s.student.name,
    )


# ------------------------
# Student report
# ------------------------
def build_student_report(student: Student, term: Term, dataset: SchoolDataset) -> Optional[StudentReport]:
    """
    Full report card for one student and one term.

    Returns None only when the student's class cannot be resolved. The rank
    is the student's position among peers of the same class and stream.
    """
    class_info = dataset.class_by_id(student.class_id)
    if class_info is None:
        logger.debug("No class %s for student %s; skipping report", student.class_id, student.id)
        return None

    results = build_subject_results(student, term, dataset)
    own = _summary_from_results(student, results)
    agg = term_aggregates(results)

    # ---- Rank within class + stream ----
    peers = []
    for peer in dataset.students:
        if peer.class_id != student.class_id or peer.stream != student.stream:
            continue
        peers.append(own if peer.id == student.id else summarize_student_term(peer, term, dataset))
    ranked = rank_summaries(peers)
    rank = rank_of(ranked, lambda s: s.student.id == student.id)

    principal_comment, class_teacher_comment = term_comments(student, agg["mean_term_points"])
    class_teacher = find_class_teacher(student.class_id, dataset.users)
    principal = find_principal(dataset.users)

    return StudentReport(
        student=student,
        class_info=class_info,
        term=term,
        subject_results=tuple(results),
        total_weighted_marks=agg["total_weighted_marks"],
        max_total_marks=agg["max_total_marks"],
        mean_weighted_score=agg["mean_weighted_score"],
        mean_term_points=agg["mean_term_points"],
        overall_term_grade=agg["overall_term_grade"],
        principal_comment=principal_comment,
        class_teacher_comment=class_teacher_comment,
        rank=rank,
        total_students_in_class=len(ranked) if rank is not None else None,
        class_teacher_name=class_teacher.name if class_teacher else None,
        class_teacher_signature_url=class_teacher.signature_image_url if class_teacher else None,
        principal_name=principal.name if principal else None,
        principal_signature_url=principal.signature_image_url if principal else None,
        current_fees_balance=student.current_fees_balance,
        next_term_fees=student.next_term_fees,
        closing_date=term.closing_date,
        opening_date=term.opening_date,
    )


# ------------------------
# Performance history
# ------------------------
def term_number(term: Term) -> int:
    """'Term 2' -> 2; terms without a number sort last within their year."""
    nums = re.findall(r"\d+", term.name)
    return int(nums[-1]) if nums else 99


def student_performance_history(student_id: str, dataset: SchoolDataset) -> List[PerformanceDatapoint]:
    """One datapoint per term in which the student has graded work, oldest first."""
    student = dataset.student_by_id(student_id)
    if student is None or dataset.class_by_id(student.class_id) is None:
        return []

    history = []
    for term in dataset.terms:
        summary = summarize_student_term(student, term, dataset)
        if summary.mean_term_points is None:
            continue
        history.append((term, PerformanceDatapoint(
            term_id=term.id,
            term_name=term.name,
            year=term.year,
            mean_weighted_score=summary.mean_weighted_score,
            mean_term_points=summary.mean_term_points,
            overall_term_grade=summary.overall_term_grade,
        )))

    history.sort(key=lambda pair: (pair[0].year, term_number(pair[0])))
    return [point for _, point in history]

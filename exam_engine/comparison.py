from typing import List, Optional

from exam_engine.models import PerformanceChangeEntry, SchoolDataset, Term
from exam_engine.reports import build_student_report


def generate_performance_changes(current_term: Term,
                                 previous_term: Term,
                                 dataset: SchoolDataset,
                                 class_id: Optional[str] = None) -> List[PerformanceChangeEntry]:
    """
    Pairwise mean-points deltas between two terms.

    A student appears only when both terms produced a report with mean
    points. Entries keep the snapshot's student order; picking out the most
    improved or the biggest drops is left to the caller.
    """
    students = [s for s in dataset.students if class_id is None or s.class_id == class_id]

    changes = []
    for student in students:
        current = build_student_report(student, current_term, dataset)
        previous = build_student_report(student, previous_term, dataset)
        if current is None or current.mean_term_points is None:
            continue
        if previous is None or previous.mean_term_points is None:
            continue
        changes.append(PerformanceChangeEntry(
            student=student,
            current_report=current,
            previous_report=previous,
            mean_points_change=current.mean_term_points - previous.mean_term_points,
        ))
    return changes

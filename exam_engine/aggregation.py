import logging
from typing import List, Sequence, Tuple

import numpy as np

from exam_engine.grading import round_half_up
from exam_engine.models import (
    ABSENT, MALPRACTICE, UNRECORDED,
    CalculationMode, ExamSession, SchoolDataset, ScoreKind, ScoreOutcome,
    Student, Subject, Term,
)

logger = logging.getLogger(__name__)


def session_outcomes(student: Student,
                     subject: Subject,
                     sessions: Sequence[ExamSession],
                     dataset: SchoolDataset) -> List[Tuple[ExamSession, ScoreOutcome]]:
    """Pair every session of the term with the student's outcome for the subject."""
    return [
        (session, ScoreOutcome.from_raw(dataset.raw_score(student.id, subject.id, session.id)))
        for session in sessions
    ]


def weighted_mean(sw: np.ndarray) -> float:
    """
    sw: Nx2 numpy array -> [score, weight]
    returns: weight-normalised mean score, NaN when the weights sum to 0
    """
    if sw.size == 0:
        return np.nan
    scores = sw[:, 0].astype(float)
    weights = sw[:, 1].astype(float)
    total_weight = float(weights.sum())
    if total_weight == 0:
        return np.nan
    return float(np.dot(scores, weights) / total_weight)


def aggregate_subject_score(scored: Sequence[Tuple[ScoreOutcome, float]],
                            mode: CalculationMode) -> ScoreOutcome:
    """
    Combine one subject's session outcomes into the term score.

    Parameters
    ----------
    scored : list of (outcome, session weight), in session order
    mode : the term's calculation mode

    Returns
    -------
    ScoreOutcome
        UNRECORDED when nothing was entered; ABSENT or MALPRACTICE when only
        sentinel codes were entered (malpractice dominates); otherwise the
        rounded mean over the real scores. Sessions without a real score
        are left out of both sides of a weighted mean, so a missing CAT
        renormalises onto the remaining papers instead of counting as 0.
    """
    mode = CalculationMode(mode)
    recorded = [(o, w) for o, w in scored if o.is_recorded]
    if not recorded:
        return UNRECORDED

    real = [(o.value, w) for o, w in recorded if o.is_real]
    if not real:
        if any(o.kind is ScoreKind.MALPRACTICE for o, _ in recorded):
            return MALPRACTICE
        return ABSENT

    if mode is CalculationMode.SIMPLE_AVERAGE:
        unrounded = float(np.mean([v for v, _ in real]))
    else:
        unrounded = weighted_mean(np.array(real, dtype=float))
        if np.isnan(unrounded):
            logger.debug("All scored sessions carry zero weight; treating subject as unrecorded")
            return UNRECORDED

    return ScoreOutcome.numeric(round_half_up(unrounded))


def subject_term_score(student: Student,
                       subject: Subject,
                       term: Term,
                       dataset: SchoolDataset) -> ScoreOutcome:
    sessions = dataset.sessions_for_term(term)
    pairs = session_outcomes(student, subject, sessions, dataset)
    return aggregate_subject_score([(o, s.weight) for s, o in pairs], term.calculation_mode)

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple


# ------------------------
# Reference data
# ------------------------
class CalculationMode(str, Enum):
    WEIGHTED_AVERAGE = "WEIGHTED_AVERAGE"
    SIMPLE_AVERAGE = "SIMPLE_AVERAGE"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    PARENT = "PARENT"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


@dataclass(frozen=True)
class Subject:
    id: str
    name: str
    group: Optional[int] = None


@dataclass(frozen=True)
class SchoolClass:
    id: str
    name: str


@dataclass(frozen=True)
class Term:
    id: str
    name: str
    year: int
    calculation_mode: CalculationMode = CalculationMode.WEIGHTED_AVERAGE
    closing_date: Optional[str] = None
    opening_date: Optional[str] = None


@dataclass(frozen=True)
class ExamSession:
    id: str
    term_id: str
    name: str
    weight: int


@dataclass(frozen=True)
class Student:
    id: str
    admission_number: str
    name: str
    class_id: str
    stream: str
    gender: Gender = Gender.MALE
    current_fees_balance: float = 0
    next_term_fees: float = 0
    subjects: Optional[Tuple[str, ...]] = None  # None -> every active subject
    parent_username: str = ""

    @property
    def first_name(self) -> str:
        parts = self.name.split(" ")
        return parts[0] if parts else ""


@dataclass(frozen=True)
class Mark:
    student_id: str
    subject_id: str
    exam_session_id: str
    score: Optional[float]  # raw stored code: 0..100, -1, -2 or None


@dataclass(frozen=True)
class ClassSubjectAssignment:
    class_id: str
    subject_ids: Tuple[str, ...]


@dataclass(frozen=True)
class User:
    id: str
    name: str
    role: UserRole
    class_subject_assignments: Tuple[ClassSubjectAssignment, ...] = ()
    signature_image_url: Optional[str] = None

    def teaches(self, class_id: str, subject_id: Optional[str] = None) -> bool:
        for assignment in self.class_subject_assignments:
            if assignment.class_id != class_id:
                continue
            if subject_id is None or subject_id in assignment.subject_ids:
                return True
        return False


# ------------------------
# Score outcomes
# ------------------------
ABSENT_CODE = -1
MALPRACTICE_CODE = -2


class ScoreKind(str, Enum):
    NUMERIC = "NUMERIC"
    ABSENT = "ABSENT"
    MALPRACTICE = "MALPRACTICE"
    UNRECORDED = "UNRECORDED"


@dataclass(frozen=True)
class ScoreOutcome:
    """
    A single score with its status made explicit.

    The stored mark codes (-1 absent, -2 malpractice, None not entered) are
    translated once by ``from_raw``; everything downstream branches on
    ``kind`` instead of comparing against the codes.
    """
    kind: ScoreKind
    value: Optional[float] = None

    @classmethod
    def numeric(cls, value: float) -> "ScoreOutcome":
        return cls(ScoreKind.NUMERIC, value)

    @classmethod
    def from_raw(cls, raw) -> "ScoreOutcome":
        if isinstance(raw, ScoreOutcome):
            return raw
        if raw is None:
            return UNRECORDED
        if raw != raw:  # NaN from a blank spreadsheet cell
            return UNRECORDED
        if raw == ABSENT_CODE:
            return ABSENT
        if raw == MALPRACTICE_CODE:
            return MALPRACTICE
        return cls.numeric(raw)

    def to_raw(self):
        if self.kind is ScoreKind.NUMERIC:
            return self.value
        if self.kind is ScoreKind.ABSENT:
            return ABSENT_CODE
        if self.kind is ScoreKind.MALPRACTICE:
            return MALPRACTICE_CODE
        return None

    @property
    def is_recorded(self) -> bool:
        return self.kind is not ScoreKind.UNRECORDED

    @property
    def is_real(self) -> bool:
        """A numeric score a student actually earned (non-negative)."""
        return self.kind is ScoreKind.NUMERIC and self.value >= 0


ABSENT = ScoreOutcome(ScoreKind.ABSENT)
MALPRACTICE = ScoreOutcome(ScoreKind.MALPRACTICE)
UNRECORDED = ScoreOutcome(ScoreKind.UNRECORDED)


# ------------------------
# Derived results
# ------------------------
@dataclass(frozen=True)
class GradePoint:
    grade: str
    points: int
    remarks: str


@dataclass(frozen=True)
class SubjectExamScore:
    exam_session_id: str
    exam_session_name: str
    score: ScoreOutcome
    grade: str
    points: int
    remarks: str


@dataclass(frozen=True)
class SubjectTermResult:
    subject_id: str
    subject_name: str
    score: ScoreOutcome
    grade: str
    points: int
    remarks: str
    component_scores: Tuple[SubjectExamScore, ...] = ()
    teacher_initials: str = "-"


@dataclass(frozen=True)
class StudentTermSummary:
    """Rank-free aggregates of one student for one term."""
    student: Student
    mean_term_points: Optional[float]
    overall_term_grade: Optional[str]
    total_weighted_marks: Optional[int]
    mean_weighted_score: Optional[float]
    subject_scores: Dict[str, ScoreOutcome] = field(default_factory=dict)


@dataclass(frozen=True)
class StudentReport:
    student: Student
    class_info: SchoolClass
    term: Term
    subject_results: Tuple[SubjectTermResult, ...]
    total_weighted_marks: Optional[int]
    max_total_marks: int
    mean_weighted_score: Optional[float]
    mean_term_points: Optional[float]
    overall_term_grade: Optional[str]
    principal_comment: str
    class_teacher_comment: str
    rank: Optional[int] = None
    total_students_in_class: Optional[int] = None
    class_teacher_name: Optional[str] = None
    class_teacher_signature_url: Optional[str] = None
    principal_name: Optional[str] = None
    principal_signature_url: Optional[str] = None
    current_fees_balance: float = 0
    next_term_fees: float = 0
    closing_date: Optional[str] = None
    opening_date: Optional[str] = None

    def result_for(self, subject_id: str) -> Optional[SubjectTermResult]:
        for result in self.subject_results:
            if result.subject_id == subject_id:
                return result
        return None


@dataclass(frozen=True)
class MeritListEntry:
    rank: int
    report: StudentReport


@dataclass(frozen=True)
class BroadsheetEntry:
    student_id: str
    admission_number: str
    student_name: str
    class_id: str
    stream: str
    subject_scores: Dict[str, ScoreOutcome]
    total_weighted_marks: Optional[int]
    mean_weighted_score: Optional[float]
    mean_term_points: Optional[float]
    overall_term_grade: Optional[str]
    rank: int


@dataclass(frozen=True)
class RankedSubjectStudent:
    student_id: str
    student_name: str
    admission_number: str
    score: float
    grade: str
    rank: int


@dataclass(frozen=True)
class SubjectClassAnalysis:
    subject_id: str
    subject_name: str
    mean_score: Optional[float]
    grade_distribution: Dict[str, int]
    ranked_students: List[RankedSubjectStudent]
    student_count: int


@dataclass(frozen=True)
class ClassTermAnalysis:
    class_id: str
    class_name: str
    stream: Optional[str]
    term_id: str
    term_name: str
    year: int
    overall_mean_points: float
    overall_mean_grade: str
    grade_distribution: Dict[str, int]
    total_students: int
    subject_analyses: List[SubjectClassAnalysis]


@dataclass(frozen=True)
class PerformanceChangeEntry:
    student: Student
    current_report: StudentReport
    previous_report: StudentReport
    mean_points_change: float


@dataclass(frozen=True)
class PerformanceDatapoint:
    term_id: str
    term_name: str
    year: int
    mean_weighted_score: Optional[float]
    mean_term_points: float
    overall_term_grade: Optional[str]


# ------------------------
# Snapshot
# ------------------------
class SchoolDataset:
    """
    Read-only snapshot of everything the engine reads.

    Collections are stored as tuples. Marks are the one input that changes
    between calls: replace them through ``marks`` or ``add_marks`` and the
    lookup index is rebuilt on the next read.
    """

    def __init__(self,
                 classes: Iterable[SchoolClass] = (),
                 subjects: Iterable[Subject] = (),
                 terms: Iterable[Term] = (),
                 exam_sessions: Iterable[ExamSession] = (),
                 students: Iterable[Student] = (),
                 marks: Iterable[Mark] = (),
                 users: Iterable[User] = (),
                 active_subject_ids: Optional[Iterable[str]] = None):
        self.classes = tuple(classes)
        self.subjects = tuple(subjects)
        self.terms = tuple(terms)
        self.exam_sessions = tuple(exam_sessions)
        self.students = tuple(students)
        self.users = tuple(users)
        if active_subject_ids is None:
            self.active_subject_ids = tuple(s.id for s in self.subjects)
        else:
            self.active_subject_ids = tuple(active_subject_ids)
        self.marks = marks

    @property
    def marks(self) -> Tuple[Mark, ...]:
        return self._marks

    @marks.setter
    def marks(self, marks: Iterable[Mark]):
        self._marks = tuple(marks)
        self._mark_index = None

    def add_marks(self, *marks: Mark):
        """Append newly entered marks; later lookups see them."""
        self.marks = self._marks + marks

    def class_by_id(self, class_id: str) -> Optional[SchoolClass]:
        return next((c for c in self.classes if c.id == class_id), None)

    def student_by_id(self, student_id: str) -> Optional[Student]:
        return next((s for s in self.students if s.id == student_id), None)

    def sessions_for_term(self, term: Term) -> List[ExamSession]:
        return [es for es in self.exam_sessions if es.term_id == term.id]

    @property
    def active_subjects(self) -> List[Subject]:
        active = set(self.active_subject_ids)
        return [s for s in self.subjects if s.id in active]

    def raw_score(self, student_id: str, subject_id: str, exam_session_id: str):
        if self._mark_index is None:
            index = {}
            for m in self._marks:
                # first mark wins, like a linear scan would
                index.setdefault((m.student_id, m.subject_id, m.exam_session_id), m.score)
            self._mark_index = index
        return self._mark_index.get((student_id, subject_id, exam_session_id))

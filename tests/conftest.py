import pytest

from exam_engine.models import (
    CalculationMode, ClassSubjectAssignment, ExamSession, Gender, Mark,
    SchoolClass, SchoolDataset, Student, Subject, Term, User, UserRole,
)


def marks_for(student_id, subject_id, scores):
    """scores: {exam_session_id: raw score}"""
    return [Mark(student_id, subject_id, session_id, score) for session_id, score in scores.items()]


@pytest.fixture
def term1():
    return Term("T1", "Term 1", 2025, CalculationMode.WEIGHTED_AVERAGE,
                closing_date="2025-04-11", opening_date="2025-05-02")


@pytest.fixture
def term2():
    return Term("T2", "Term 2", 2025, CalculationMode.WEIGHTED_AVERAGE,
                closing_date="2025-08-08", opening_date="2025-09-01")


@pytest.fixture
def school(term1, term2):
    """
    Form 2 North: Charlie, Daisy, Evan. Form 2 South: Fiona. Form 3 East: George.

    Term 1 subject scores (CAT 30% / EndTerm 70%):
      Charlie  MAT 59  ENG 61  KIS 67       -> 8.0 points, 187 marks
      Daisy    MAT 89  ENG 81  KIS absent   -> 8.0 points, 170 marks
      Evan     MAT 40 (EndTerm only)        -> 4.0 points, 40 marks
      Fiona    MAT 70                       -> 10.0 points, 70 marks
      George   MAT 50                       -> 6.0 points, 50 marks
    """
    classes = [SchoolClass("C02", "Form 2"), SchoolClass("C03", "Form 3")]
    subjects = [
        Subject("MAT", "Mathematics", 1),
        Subject("ENG", "English", 1),
        Subject("KIS", "Kiswahili", 1),
        Subject("BIO", "Biology", 2),
    ]
    sessions = [
        ExamSession("ES1", "T1", "Term 1 CAT", 30),
        ExamSession("ES2", "T1", "Term 1 EndTerm", 70),
        ExamSession("ES3", "T2", "Term 2 CAT", 30),
        ExamSession("ES4", "T2", "Term 2 EndTerm", 70),
    ]
    students = [
        Student("S1", "2001", "Charlie Brown", "C02", "North", Gender.MALE, 15000, 45000),
        Student("S2", "2002", "Daisy Duck", "C02", "North", Gender.FEMALE, 0, 45000),
        Student("S3", "2003", "Evan Almighty", "C02", "North", Gender.MALE),
        Student("S4", "2004", "Fiona Gallagher", "C02", "South", Gender.FEMALE),
        Student("S5", "3001", "George Jetson", "C03", "East", Gender.MALE),
    ]
    users = [
        User("admin0", "Super Admin", UserRole.ADMIN),
        User("admin1", "Principal P. Mwangi", UserRole.ADMIN, signature_image_url="sig://principal"),
        User("t1", "Alice Wonder", UserRole.TEACHER,
             (ClassSubjectAssignment("C02", ("MAT", "ENG")),), signature_image_url="sig://alice"),
        User("t2", "Bob Builder", UserRole.TEACHER, (ClassSubjectAssignment("C02", ("KIS",)),)),
    ]
    marks = (
        # Term 1
        marks_for("S1", "MAT", {"ES1": 55, "ES2": 61})
        + marks_for("S1", "ENG", {"ES1": 60, "ES2": 62})
        + marks_for("S1", "KIS", {"ES1": 65, "ES2": 68})
        + marks_for("S2", "MAT", {"ES1": 85, "ES2": 90})
        + marks_for("S2", "ENG", {"ES1": 80, "ES2": 82})
        + marks_for("S2", "KIS", {"ES1": -1, "ES2": -1})
        + marks_for("S3", "MAT", {"ES1": None, "ES2": 40})
        + marks_for("S4", "MAT", {"ES1": 70, "ES2": 70})
        + marks_for("S5", "MAT", {"ES1": 50, "ES2": 50})
        # Term 2
        + marks_for("S1", "MAT", {"ES3": 70, "ES4": 75})
        + marks_for("S1", "ENG", {"ES3": 70, "ES4": 70})
        + marks_for("S1", "KIS", {"ES3": 70, "ES4": 70})
        + marks_for("S2", "MAT", {"ES3": 80, "ES4": 80})
        + marks_for("S2", "ENG", {"ES3": 80, "ES4": 80})
        + marks_for("S2", "KIS", {"ES3": 50, "ES4": 50})
        + marks_for("S4", "MAT", {"ES3": 60, "ES4": 60})
    )
    return SchoolDataset(
        classes=classes,
        subjects=subjects,
        terms=[term1, term2],
        exam_sessions=sessions,
        students=students,
        marks=marks,
        users=users,
        active_subject_ids=["MAT", "ENG", "KIS"],
    )


@pytest.fixture
def student(school):
    def _get(student_id):
        return school.student_by_id(student_id)
    return _get

import os
from typing import Dict, Iterable, List, Optional

import pandas as pd

from exam_engine import config
from exam_engine.models import (
    BroadsheetEntry, CalculationMode, ClassSubjectAssignment, ExamSession, Gender,
    Mark, MeritListEntry, SchoolClass, SchoolDataset, Student, Subject, Term, User, UserRole,
)

# ------------------------
# CSV helpers (configuration store side)
# ------------------------
REQUIRED_COLUMNS = {
    "classes": {"id", "name"},
    "subjects": {"id", "name"},
    "terms": {"id", "name", "year"},
    "exam_sessions": {"id", "term_id", "name", "weight"},
    "students": {"id", "admission_number", "name", "class_id", "stream"},
    "marks": {"student_id", "subject_id", "exam_session_id", "score"},
    "users": {"id", "name", "role"},
    "teacher_assignments": {"user_id", "class_id", "subject_id"},
    "active_subjects": {"subject_id"},
}

OPTIONAL_TABLES = ("users", "teacher_assignments", "active_subjects")


def _normalise_cols(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]
    return df


def read_csv_upload(uploaded_file) -> pd.DataFrame:
    # ids such as admission numbers keep their leading zeros as text
    df = pd.read_csv(uploaded_file, dtype=str)
    return _normalise_cols(df)


def validate_table(df: pd.DataFrame, table: str) -> pd.DataFrame:
    required = REQUIRED_COLUMNS[table]
    missing = required - set(df.columns)
    if missing:
        raise ValueError(f"Missing columns in {table}: {sorted(missing)}. Expected: {sorted(required)}.")
    return df


def _text(value) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    value = str(value).strip()
    return value or None


def _number(value):
    text = _text(value)
    if text is None:
        return None
    number = float(text)
    return int(number) if number.is_integer() else number


def _required(row, column: str, table: str, index) -> str:
    value = _text(row.get(column))
    if value is None:
        # index 0 is the first data line, below the header
        raise ValueError(f"Blank {column} in {table}, line {index + 2}.")
    return value


def parse_classes(df: pd.DataFrame) -> List[SchoolClass]:
    return [SchoolClass(id=_text(row.get("id")), name=_text(row.get("name")) or "")
            for _, row in df.iterrows()]


def parse_subjects(df: pd.DataFrame) -> List[Subject]:
    return [Subject(id=_text(row.get("id")), name=_text(row.get("name")) or "", group=_number(row.get("group")))
            for _, row in df.iterrows()]


def parse_terms(df: pd.DataFrame) -> List[Term]:
    rows = []
    for i, row in df.iterrows():
        mode = _text(row.get("calculation_mode")) or CalculationMode.WEIGHTED_AVERAGE.value
        rows.append(Term(
            id=_text(row.get("id")),
            name=_text(row.get("name")) or "",
            year=int(_number(_required(row, "year", "terms", i))),
            calculation_mode=CalculationMode(mode.upper()),
            closing_date=_text(row.get("closing_date")),
            opening_date=_text(row.get("opening_date")),
        ))
    return rows


def parse_exam_sessions(df: pd.DataFrame) -> List[ExamSession]:
    return [ExamSession(id=_text(row.get("id")),
                        term_id=_text(row.get("term_id")),
                        name=_text(row.get("name")) or "",
                        weight=_number(row.get("weight")) or 0)
            for _, row in df.iterrows()]


def parse_students(df: pd.DataFrame) -> List[Student]:
    sep = config.STUDENT_SUBJECTS_SEPARATOR
    rows = []
    for _, row in df.iterrows():
        subjects = _text(row.get("subjects"))
        chosen = tuple(s.strip() for s in subjects.split(sep) if s.strip()) if subjects else None
        gender = _text(row.get("gender"))
        rows.append(Student(
            id=_text(row.get("id")),
            admission_number=_text(row.get("admission_number")) or "",
            name=_text(row.get("name")) or "",
            class_id=_text(row.get("class_id")),
            stream=_text(row.get("stream")) or "",
            gender=Gender(gender.capitalize()) if gender else Gender.MALE,
            current_fees_balance=_number(row.get("current_fees_balance")) or 0,
            next_term_fees=_number(row.get("next_term_fees")) or 0,
            subjects=chosen or None,
            parent_username=_text(row.get("parent_username")) or "",
        ))
    return rows


def parse_marks(df: pd.DataFrame) -> List[Mark]:
    """A blank score cell means 'not yet entered' and becomes None."""
    return [Mark(student_id=_text(row.get("student_id")),
                 subject_id=_text(row.get("subject_id")),
                 exam_session_id=_text(row.get("exam_session_id")),
                 score=_number(row.get("score")))
            for _, row in df.iterrows()]


def parse_users(df: pd.DataFrame, assignments: Optional[pd.DataFrame] = None) -> List[User]:
    by_user: Dict[str, Dict[str, List[str]]] = {}
    if assignments is not None:
        for _, row in assignments.iterrows():
            classes = by_user.setdefault(_text(row.get("user_id")), {})
            subject_ids = classes.setdefault(_text(row.get("class_id")), [])
            subject_id = _text(row.get("subject_id"))
            if subject_id and subject_id not in subject_ids:
                subject_ids.append(subject_id)

    rows = []
    for i, row in df.iterrows():
        user_id = _text(row.get("id"))
        classes = by_user.get(user_id, {})
        rows.append(User(
            id=user_id,
            name=_text(row.get("name")) or "",
            role=UserRole(_required(row, "role", "users", i).upper()),
            class_subject_assignments=tuple(
                ClassSubjectAssignment(class_id=c, subject_ids=tuple(s)) for c, s in classes.items()
            ),
            signature_image_url=_text(row.get("signature_image_url")),
        ))
    return rows


def _read_table(directory: str, table: str) -> Optional[pd.DataFrame]:
    path = os.path.join(directory, f"{table}.csv")
    if not os.path.exists(path):
        if table in OPTIONAL_TABLES:
            return None
        raise FileNotFoundError(f"Missing required table: {path}")
    return validate_table(read_csv_upload(path), table)


def load_dataset(directory: str) -> SchoolDataset:
    """
    Build a snapshot from a directory holding one CSV per table:
    classes, subjects, terms, exam_sessions, students, marks and,
    optionally, users, teacher_assignments and active_subjects.
    """
    users_df = _read_table(directory, "users")
    assignments_df = _read_table(directory, "teacher_assignments")
    active_df = _read_table(directory, "active_subjects")

    return SchoolDataset(
        classes=parse_classes(_read_table(directory, "classes")),
        subjects=parse_subjects(_read_table(directory, "subjects")),
        terms=parse_terms(_read_table(directory, "terms")),
        exam_sessions=parse_exam_sessions(_read_table(directory, "exam_sessions")),
        students=parse_students(_read_table(directory, "students")),
        marks=parse_marks(_read_table(directory, "marks")),
        users=parse_users(users_df, assignments_df) if users_df is not None else [],
        active_subject_ids=(
            [_text(v) for v in active_df["subject_id"] if _text(v)] if active_df is not None else None
        ),
    )


# ------------------------
# Tabular exports (presentation side)
# ------------------------
def broadsheet_to_frame(entries: Iterable[BroadsheetEntry], subjects: Iterable[Subject]) -> pd.DataFrame:
    """Wide table with one column per subject; sentinel scores keep their -1/-2 codes."""
    subjects = list(subjects)
    records = []
    for e in entries:
        record = {
            "Rank": e.rank,
            "Adm No": e.admission_number,
            "Name": e.student_name,
            "Stream": e.stream,
        }
        for subject in subjects:
            outcome = e.subject_scores.get(subject.id)
            record[subject.name] = outcome.to_raw() if outcome is not None else None
        record.update({
            "Total": e.total_weighted_marks,
            "Mean %": e.mean_weighted_score,
            "Points": e.mean_term_points,
            "Grade": e.overall_term_grade,
        })
        records.append(record)
    columns = ["Rank", "Adm No", "Name", "Stream"] + [s.name for s in subjects] + ["Total", "Mean %", "Points", "Grade"]
    return pd.DataFrame(records, columns=columns)


def merit_list_to_frame(entries: Iterable[MeritListEntry]) -> pd.DataFrame:
    records = [
        {
            "Rank": e.rank,
            "Adm No": e.report.student.admission_number,
            "Name": e.report.student.name,
            "Class": e.report.class_info.name,
            "Stream": e.report.student.stream,
            "Total": e.report.total_weighted_marks,
            "Mean %": e.report.mean_weighted_score,
            "Points": e.report.mean_term_points,
            "Grade": e.report.overall_term_grade,
        }
        for e in entries
    ]
    return pd.DataFrame(records, columns=["Rank", "Adm No", "Name", "Class", "Stream",
                                          "Total", "Mean %", "Points", "Grade"])

"""Excel workbook parsing into attendance records and mark entries."""

import logging
import re
from io import BytesIO
from typing import Dict, List, Optional, Tuple

import pandas as pd
from openpyxl import load_workbook

from academic_analytics.models import PRESENT, AttendanceRecord, CohortStudent, MarkEntry

logger = logging.getLogger(__name__)

ATTENDANCE_COLUMNS = ["Student#", "Student Name", "Date", "Subject", "Status"]
MARKS_COLUMNS = ["Student#", "Student Name", "Subject", "Test 1", "Test 2", "Assignment"]

PRESENT_TOKENS = {"present", "p", "yes", "y", "1", "true"}


def normalize_col_name(col_name) -> str:
    """Lowercase, drop punctuation and collapse whitespace for matching."""
    if pd.isna(col_name):
        return ""
    normalized = str(col_name).strip().lower()
    normalized = re.sub(r'[.,%#_]', ' ', normalized)
    normalized = re.sub(r'\s+', ' ', normalized)
    return normalized.strip()


def normalize_and_rename_columns(df: pd.DataFrame, sheet_type: str) -> pd.DataFrame:
    """
    Map header variations onto the canonical column names of a sheet.

    Args:
        df: DataFrame as read from the workbook
        sheet_type: "attendance" or "marks"

    Returns:
        Copy of the DataFrame with canonical column names
    """
    df = df.copy()

    common = {
        "Student#": ["student", "student id", "studentid", "student number", "roll no", "roll number",
                     "register no", "registerno", "reg no"],
        "Student Name": ["student name", "studentname", "name"],
        "Subject": ["subject", "subject id", "subjectid", "subject name", "course", "course code"],
    }
    if sheet_type == "attendance":
        target_mappings = {
            **common,
            "Date": ["date", "session date", "class date"],
            "Status": ["status", "attendance", "present/absent", "attendance status"],
        }
    elif sheet_type == "marks":
        target_mappings = {
            **common,
            "Test 1": ["test 1", "test1", "t1", "internal 1", "cat 1"],
            "Test 2": ["test 2", "test2", "t2", "internal 2", "cat 2"],
            "Assignment": ["assignment", "assignments", "assign", "a"],
        }
    else:
        target_mappings = {}

    rename = {}
    for orig_col in df.columns:
        normalized = normalize_col_name(orig_col)
        for target_name, variations in target_mappings.items():
            if normalized in variations and target_name not in rename.values():
                rename[orig_col] = target_name
                break

    if rename:
        df = df.rename(columns=rename)
        logger.debug("Renamed columns in %s sheet: %s", sheet_type, rename)
    else:
        logger.warning("No columns were renamed in %s sheet. Original columns: %s",
                       sheet_type, list(df.columns))

    if df.columns.duplicated().any():
        logger.warning("Found duplicate columns in %s sheet: %s",
                       sheet_type, df.columns[df.columns.duplicated()].tolist())
        df = df.loc[:, ~df.columns.duplicated(keep='first')]

    if "Student#" not in df.columns:
        raise ValueError(f"Could not find a student id column in the {sheet_type} sheet. "
                         f"Columns: {list(df.columns)}")

    expected = ATTENDANCE_COLUMNS if sheet_type == "attendance" else MARKS_COLUMNS
    for col in expected:
        if col not in df.columns:
            df[col] = None

    return df


def _cell(value):
    """Blank, NaN and NaT cells become None."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    if isinstance(value, str) and not value.strip():
        return None
    return value


def clean_student_id(value) -> Optional[str]:
    """Render ids read as floats (1001.0) the way they were typed (1001)."""
    value = _cell(value)
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def normalize_status(value) -> str:
    """Spreadsheet conventions (P, Yes, 1) to 'Present'; the rest is left for the engine."""
    value = _cell(value)
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    token = str(value).strip().lower()
    return PRESENT if token in PRESENT_TOKENS else str(value).strip()


def _find_sheet(sheetnames: List[str], keyword: str) -> Optional[str]:
    for name in sheetnames:
        if keyword in name.strip().lower():
            return name
    return None


def load_workbook_frames(file_bytes: bytes) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Read the attendance and marks sheets of an uploaded workbook.

    Sheets are matched by name ("Attendance", "Marks"). A missing sheet gives
    an empty frame with the canonical columns.

    Args:
        file_bytes: Raw bytes of the .xlsx file

    Returns:
        Tuple of (attendance_df, marks_df) with canonical column names

    Raises:
        ValueError: if the file is not a readable workbook or has neither sheet
    """
    try:
        workbook = load_workbook(filename=BytesIO(file_bytes), read_only=True, data_only=True)
        sheetnames = list(workbook.sheetnames)
        workbook.close()
    except Exception as e:
        raise ValueError(f"Could not read workbook: {e}") from e

    attendance_sheet = _find_sheet(sheetnames, "attendance")
    marks_sheet = _find_sheet(sheetnames, "mark")
    if attendance_sheet is None and marks_sheet is None:
        raise ValueError(f"Could not find 'Attendance' or 'Marks' sheet. Available sheets: {sheetnames}")

    if attendance_sheet is not None:
        raw = pd.read_excel(BytesIO(file_bytes), sheet_name=attendance_sheet, engine='openpyxl')
        attendance_df = normalize_and_rename_columns(raw, "attendance")
    else:
        attendance_df = pd.DataFrame(columns=ATTENDANCE_COLUMNS)

    if marks_sheet is not None:
        raw = pd.read_excel(BytesIO(file_bytes), sheet_name=marks_sheet, engine='openpyxl')
        marks_df = normalize_and_rename_columns(raw, "marks")
    else:
        marks_df = pd.DataFrame(columns=MARKS_COLUMNS)

    logger.info("Loaded workbook: %s attendance rows, %s mark rows", len(attendance_df), len(marks_df))
    return attendance_df, marks_df


def frames_to_students(attendance_df: pd.DataFrame, marks_df: pd.DataFrame) -> List[CohortStudent]:
    """
    Group sheet rows into per-student engine inputs.

    Rows without a student id are skipped. Students appear in order of first
    appearance, attendance sheet first.
    """
    students: Dict[str, Dict] = {}

    def entry_for(row) -> Optional[Dict]:
        student_id = clean_student_id(row.get("Student#"))
        if student_id is None:
            return None
        entry = students.setdefault(student_id, {"name": None, "attendance": [], "marks": []})
        name = _cell(row.get("Student Name"))
        if entry["name"] is None and name is not None:
            entry["name"] = str(name).strip()
        return entry

    for row in attendance_df.to_dict(orient="records"):
        entry = entry_for(row)
        if entry is None:
            continue
        entry["attendance"].append(AttendanceRecord(
            date=_cell(row.get("Date")),
            subject_id=clean_student_id(row.get("Subject")) or "",
            status=normalize_status(row.get("Status")),
        ))

    for row in marks_df.to_dict(orient="records"):
        entry = entry_for(row)
        if entry is None:
            continue
        entry["marks"].append(MarkEntry(
            subject_id=clean_student_id(row.get("Subject")) or "",
            test1=_cell(row.get("Test 1")),
            test2=_cell(row.get("Test 2")),
            assignment=_cell(row.get("Assignment")),
        ))

    return [
        CohortStudent(student_id=student_id, name=data["name"],
                      attendance=data["attendance"], marks=data["marks"])
        for student_id, data in students.items()
    ]

"""
Course data access.

``CourseDataStore`` names the read interface the chat pipeline depends on;
``SQLiteCourseStore`` is the bundled implementation. Records are plain dicts
and a field with no value is simply missing from the dict.
"""

import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from contextlib import closing
from datetime import datetime
from typing import Any, Dict, List, Optional

from .errors import RetrievalError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

MATERIAL_COLUMNS = (
    "id", "date_created", "date_modified", "created_by", "created_by_name",
    "course", "file_name", "uploaded_at", "description",
)

ASSIGNMENT_COLUMNS = (
    "id", "date_created", "date_modified", "created_by", "created_by_name",
    "title", "due_date", "course", "teacher_remarks", "grade", "completion",
    "student_name", "answer", "additional_answer", "uploaded_file", "questions_file",
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS materials (
    id TEXT PRIMARY KEY,
    date_created TEXT,
    date_modified TEXT,
    created_by TEXT,
    created_by_name TEXT,
    course TEXT,
    file_name TEXT,
    uploaded_at TEXT,
    description TEXT
);
CREATE TABLE IF NOT EXISTS assignments (
    id TEXT PRIMARY KEY,
    date_created TEXT,
    date_modified TEXT,
    created_by TEXT,
    created_by_name TEXT,
    title TEXT,
    due_date TEXT,
    course TEXT,
    teacher_remarks TEXT,
    grade TEXT,
    completion TEXT,
    student_name TEXT,
    answer TEXT,
    additional_answer TEXT,
    uploaded_file TEXT,
    questions_file TEXT
);
CREATE TABLE IF NOT EXISTS chat_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT,
    user_prompt TEXT,
    ai_response TEXT,
    model TEXT,
    timestamp TEXT
);
CREATE INDEX IF NOT EXISTS idx_chat_session ON chat_history (session_id);
"""

SEARCH_LIMIT = 20
UPCOMING_LIMIT = 10

# Empty or missing due dates sort after real ones; ties fall back to newest first, then id.
ASSIGNMENT_ORDER = (
    "ORDER BY (due_date IS NULL OR due_date = '') ASC, due_date ASC, "
    "date_created DESC, id ASC"
)
MATERIAL_ORDER = "ORDER BY date_created DESC, id ASC"


def clamp_limit(raw, default, maximum):
    """Parse a user-supplied limit; junk falls back to ``default``."""
    try:
        limit = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    if limit < 1:
        return default
    return min(limit, maximum)


def _now():
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class CourseDataStore(ABC):
    """Read interface consumed by the context retriever."""

    @abstractmethod
    def search_materials(self, term: str) -> List[Record]:
        pass

    @abstractmethod
    def get_all_materials(self) -> List[Record]:
        pass

    @abstractmethod
    def get_materials_by_course(self, course: str) -> List[Record]:
        pass

    @abstractmethod
    def search_assignments(self, term: str) -> List[Record]:
        pass

    @abstractmethod
    def get_all_assignments(self) -> List[Record]:
        pass

    @abstractmethod
    def get_upcoming_assignments(self) -> List[Record]:
        pass

    @abstractmethod
    def get_assignments_by_status(self, status: str) -> List[Record]:
        pass

    @abstractmethod
    def get_assignments_by_course(self, course: str) -> List[Record]:
        pass


class SQLiteCourseStore(CourseDataStore):
    """SQLite-backed course store. Opens a short-lived connection per call."""

    def __init__(self, path: str):
        self.path = path

    def _connect(self):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def _query(self, sql, params=()) -> List[Record]:
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            logger.error("Query failed: %s", exc)
            raise RetrievalError(str(exc)) from exc
        return [{key: row[key] for key in row.keys() if row[key] is not None} for row in rows]

    def _execute(self, sql, params=()) -> int:
        try:
            with closing(self._connect()) as conn:
                with conn:
                    cursor = conn.execute(sql, params)
                return cursor.rowcount
        except sqlite3.Error as exc:
            logger.error("Update failed: %s", exc)
            raise RetrievalError(str(exc)) from exc

    def _count(self, sql, params=()) -> int:
        rows = self._query(sql, params)
        return int(rows[0].get("count", 0)) if rows else 0

    # ===========================
    # Schema / housekeeping
    # ===========================

    def init_schema(self):
        try:
            with closing(self._connect()) as conn:
                conn.executescript(SCHEMA)
                conn.commit()
        except sqlite3.Error as exc:
            raise RetrievalError(str(exc)) from exc

    def ping(self) -> bool:
        try:
            self._query("SELECT 1 AS ok")
        except RetrievalError:
            return False
        return True

    def insert_material(self, record: Record) -> None:
        values = {column: record.get(column) for column in MATERIAL_COLUMNS}
        values["date_created"] = values["date_created"] or _now()
        placeholders = ", ".join("?" for _ in MATERIAL_COLUMNS)
        self._execute(
            f"INSERT INTO materials ({', '.join(MATERIAL_COLUMNS)}) VALUES ({placeholders})",
            tuple(values[column] for column in MATERIAL_COLUMNS),
        )

    def insert_assignment(self, record: Record) -> None:
        values = {column: record.get(column) for column in ASSIGNMENT_COLUMNS}
        values["date_created"] = values["date_created"] or _now()
        placeholders = ", ".join("?" for _ in ASSIGNMENT_COLUMNS)
        self._execute(
            f"INSERT INTO assignments ({', '.join(ASSIGNMENT_COLUMNS)}) VALUES ({placeholders})",
            tuple(values[column] for column in ASSIGNMENT_COLUMNS),
        )

    # ===========================
    # Course materials
    # ===========================

    def get_all_materials(self):
        logger.info("Fetching all course materials...")
        return self._query(f"SELECT * FROM materials {MATERIAL_ORDER}")

    def search_materials(self, term):
        logger.info("Searching materials with keyword: %s", term)
        pattern = f"%{term}%"
        return self._query(
            "SELECT * FROM materials WHERE course LIKE ? OR description LIKE ? OR file_name LIKE ? "
            f"{MATERIAL_ORDER} LIMIT ?",
            (pattern, pattern, pattern, SEARCH_LIMIT),
        )

    def get_materials_by_course(self, course):
        logger.info("Fetching materials for course: %s", course)
        return self._query(f"SELECT * FROM materials WHERE course = ? {MATERIAL_ORDER}", (course,))

    def get_unevaluated_materials(self, course=None, limit=None):
        sql = "SELECT * FROM materials WHERE 1=1"
        params = []
        if course and course.strip():
            sql += " AND course = ?"
            params.append(course)
        sql += f" {MATERIAL_ORDER} LIMIT ?"
        params.append(clamp_limit(limit, 5, 20))
        return self._query(sql, tuple(params))

    # ===========================
    # Assignments
    # ===========================

    def get_all_assignments(self):
        logger.info("Fetching all assignments...")
        return self._query(f"SELECT * FROM assignments {ASSIGNMENT_ORDER}")

    def search_assignments(self, term):
        logger.info("Searching assignments with keyword: %s", term)
        pattern = f"%{term}%"
        return self._query(
            "SELECT * FROM assignments WHERE title LIKE ? OR course LIKE ? "
            "OR teacher_remarks LIKE ? OR answer LIKE ? "
            f"{ASSIGNMENT_ORDER} LIMIT ?",
            (pattern, pattern, pattern, pattern, SEARCH_LIMIT),
        )

    def get_assignments_by_status(self, status):
        logger.info("Fetching assignments with status: %s", status)
        return self._query(f"SELECT * FROM assignments WHERE completion = ? {ASSIGNMENT_ORDER}", (status,))

    def get_assignments_by_course(self, course):
        logger.info("Fetching assignments for course: %s", course)
        return self._query(f"SELECT * FROM assignments WHERE course = ? {ASSIGNMENT_ORDER}", (course,))

    def get_upcoming_assignments(self):
        logger.info("Fetching upcoming assignments...")
        return self._query(
            "SELECT * FROM assignments WHERE due_date IS NOT NULL AND due_date != '' "
            f"{ASSIGNMENT_ORDER} LIMIT ?",
            (UPCOMING_LIMIT,),
        )

    def get_assignment(self, assignment_id) -> Optional[Record]:
        rows = self._query("SELECT * FROM assignments WHERE id = ?", (assignment_id,))
        return rows[0] if rows else None

    def get_ungraded_assignments(self, course=None, status=None, limit=None):
        sql = "SELECT * FROM assignments WHERE (grade IS NULL OR grade = '')"
        params = []
        if course and course.strip():
            sql += " AND course = ?"
            params.append(course)
        if status == "completed":
            sql += " AND completion = 'yes'"
        elif status == "submitted":
            sql += " AND ((answer IS NOT NULL AND answer != '') OR (uploaded_file IS NOT NULL AND uploaded_file != ''))"
        sql += " ORDER BY date_created DESC, id ASC LIMIT ?"
        params.append(clamp_limit(limit, 10, 50))
        return self._query(sql, tuple(params))

    def save_grading_result(self, assignment_id, grade, remarks) -> int:
        updated = self._execute(
            "UPDATE assignments SET grade = ?, teacher_remarks = ?, completion = 'yes', date_modified = ? "
            "WHERE id = ?",
            (grade, remarks, _now(), assignment_id),
        )
        logger.info("Grading result saved for assignment: %s", assignment_id)
        return updated

    # ===========================
    # Courses / statistics
    # ===========================

    def get_all_courses(self) -> List[str]:
        rows = self._query(
            "SELECT course FROM materials WHERE course IS NOT NULL AND course != '' "
            "UNION SELECT course FROM assignments WHERE course IS NOT NULL AND course != ''"
        )
        return sorted({row["course"] for row in rows})

    def get_course_statistics(self) -> Dict[str, Any]:
        courses = self.get_all_courses()
        return {
            "totalMaterials": self._count("SELECT COUNT(*) AS count FROM materials"),
            "totalAssignments": self._count("SELECT COUNT(*) AS count FROM assignments"),
            "totalCourses": len(courses),
            "coursesList": courses,
            "completedAssignments": self._count(
                "SELECT COUNT(*) AS count FROM assignments WHERE completion = 'yes'"
            ),
            "gradedAssignments": self._count(
                "SELECT COUNT(*) AS count FROM assignments WHERE grade IS NOT NULL AND grade != ''"
            ),
        }

    # ===========================
    # Chat history
    # ===========================

    def save_chat_conversation(self, session_id, user_prompt, ai_response, model) -> None:
        self._execute(
            "INSERT INTO chat_history (session_id, user_prompt, ai_response, model, timestamp) "
            "VALUES (?, ?, ?, ?, ?)",
            (session_id, user_prompt, ai_response, model, _now()),
        )

    def get_chat_history(self, session_id, limit=50) -> List[Record]:
        return self._query(
            "SELECT * FROM chat_history WHERE session_id = ? ORDER BY timestamp DESC, id DESC LIMIT ?",
            (session_id, limit),
        )

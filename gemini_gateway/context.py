"""Database context retrieval for chat prompts."""

import logging
from dataclasses import dataclass
from typing import Optional

from .content_analyzer import ContentType, QueryType

logger = logging.getLogger(__name__)

SUMMARY_LIMIT = 10
UPCOMING_LIMIT = 10

MATERIAL_FIELDS = (
    ("course", "Course"),
    ("file_name", "Material"),
    ("description", "Description"),
    ("uploaded_at", "Uploaded"),
    ("created_by_name", "Created by"),
)

ASSIGNMENT_FIELDS = (
    ("title", "Title"),
    ("course", "Course"),
    ("due_date", "Due Date"),
    ("completion", "Status"),
    ("grade", "Grade"),
    ("answer", "Info"),
    ("teacher_remarks", "Teacher Remarks"),
    ("created_by_name", "Created by"),
)


@dataclass
class RetrievedContext:
    text: str = ""
    record_count: int = 0
    search_applied: bool = False
    error: Optional[str] = None

    def __bool__(self):
        return bool(self.text)


def _present(record, key):
    value = record.get(key)
    if value is None:
        return None
    value = str(value)
    return value if value.strip() else None


def _format_entries(records, fields, noun):
    lines = []
    for index, record in enumerate(records[:SUMMARY_LIMIT], start=1):
        first = True
        for key, label in fields:
            value = _present(record, key)
            if value is None:
                continue
            prefix = f"{index}. " if first else "   "
            lines.append(f"{prefix}{label}: {value}")
            first = False
        if first:
            lines.append(f"{index}. (no details)")
        lines.append("")
    if len(records) > SUMMARY_LIMIT:
        lines.append(f"... and {len(records) - SUMMARY_LIMIT} more {noun}.")
    return "\n".join(lines) + "\n"


def summarize_materials(records, search_term=None):
    """Numbered summary of up to ten materials."""
    if not records:
        suffix = f" for: {search_term}" if search_term else ""
        return f"No course materials found{suffix}."
    header = "Available Course Materials"
    if search_term:
        header += f" (matching '{search_term}')"
    return f"{header}:\n\n" + _format_entries(records, MATERIAL_FIELDS, "materials")


def summarize_assignments(records, search_term=None):
    """Numbered summary of up to ten assignments."""
    if not records:
        suffix = f" for: {search_term}" if search_term else ""
        return f"No assignments found{suffix}."
    header = "Available Assignments"
    if search_term:
        header += f" (matching '{search_term}')"
    return f"{header}:\n\n" + _format_entries(records, ASSIGNMENT_FIELDS, "assignments")


def format_upcoming(records):
    if not records:
        return "No upcoming assignments due.\n"
    lines = []
    for record in records[:UPCOMING_LIMIT]:
        title = _present(record, "title") or "Untitled assignment"
        due = _present(record, "due_date") or "no due date"
        lines.append(f"- {title} (Due: {due})")
    return "\n".join(lines) + "\n"


class ContextRetriever:
    """Turns a classification into a bounded text summary from the data store."""

    def __init__(self, store):
        self.store = store

    def retrieve(self, classification):
        if classification.content_type == ContentType.GENERAL:
            return RetrievedContext()
        try:
            if classification.content_type == ContentType.MATERIALS:
                return self._materials(classification)
            return self._assignments(classification)
        except Exception as exc:
            logger.exception("Error fetching database context: %s", exc)
            return RetrievedContext(
                text=f"DATABASE CONTEXT: Error retrieving data - {exc}\n",
                error=str(exc),
            )

    def _materials(self, classification):
        terms = classification.search_terms
        if classification.query_type == QueryType.SEARCH and terms:
            records = self.store.search_materials(terms)
            text = (
                f"DATABASE CONTEXT - Course Materials (Search: {terms}):\n"
                f"{summarize_materials(records, terms)}\n"
            )
            return RetrievedContext(text, len(records), True)

        records = self.store.get_all_materials()
        text = f"DATABASE CONTEXT - All Course Materials:\n{summarize_materials(records)}\n"
        return RetrievedContext(text, len(records), False)

    def _assignments(self, classification):
        terms = classification.search_terms
        if classification.query_type == QueryType.STATUS:
            records = self.store.get_upcoming_assignments()
            text = "DATABASE CONTEXT - Upcoming Assignments:\n" + format_upcoming(records)
            return RetrievedContext(text, min(len(records), UPCOMING_LIMIT), False)

        if classification.query_type == QueryType.SEARCH and terms:
            records = self.store.search_assignments(terms)
            text = (
                f"DATABASE CONTEXT - Assignments (Search: {terms}):\n"
                f"{summarize_assignments(records, terms)}\n"
            )
            return RetrievedContext(text, len(records), True)

        records = self.store.get_all_assignments()
        text = f"DATABASE CONTEXT - All Assignments:\n{summarize_assignments(records)}\n"
        return RetrievedContext(text, len(records), False)

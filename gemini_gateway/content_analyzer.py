"""
Heuristic intent classification for chat messages.

Decides whether a message is about course materials, assignments or neither,
what kind of query it is, and which words are worth searching the data store
for. Keywords match as plain substrings, so "test" also fires inside
"latest"; callers rely on that exact behaviour.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import ClassificationError

logger = logging.getLogger(__name__)


class ContentType(str, Enum):
    MATERIALS = "MATERIALS"
    ASSIGNMENTS = "ASSIGNMENTS"
    GENERAL = "GENERAL"


class QueryType(str, Enum):
    LIST = "LIST"        # "what courses do we have?"
    SEARCH = "SEARCH"    # "find courses about java"
    STATUS = "STATUS"    # "upcoming assignments"
    GENERAL = "GENERAL"


MATERIAL_KEYWORDS = (
    "course", "courses", "material", "materials", "content", "lesson", "lessons",
    "tutorial", "tutorials", "study", "learning", "module", "modules",
    "chapter", "chapters", "textbook", "textbooks", "resource", "resources",
    "notes", "lecture", "lectures", "reading", "readings", "document", "documents",
)

ASSIGNMENT_KEYWORDS = (
    "assignment", "assignments", "homework", "task", "tasks", "project", "projects",
    "exercise", "exercises", "quiz", "quizzes", "exam", "exams", "test", "tests",
    "due", "deadline", "submit", "submission", "submissions", "work", "activity",
)

STATUS_PATTERNS = (
    "upcoming.*", "due.*", "pending.*", "active.*", "current.*", "next.*",
    "this.*week", "today.*", "tomorrow.*", "soon.*",
)

LIST_PATTERNS = (
    "what.*do.*have", "what.*are.*available", "show.*me", "list.*", "give.*me.*list",
    "what.*courses", "what.*assignments", "what.*materials", "all.*", "any.*",
)

SEARCH_PATTERNS = (
    "find.*", "search.*", "look.*for", "about.*", "related.*to", "concerning.*",
)

STOP_WORDS = frozenset((
    "what", "where", "when", "how", "why", "who", "which", "are", "is", "do", "does",
    "can", "could", "would", "should", "will", "the", "a", "an", "and", "or", "but",
    "in", "on", "at", "to", "for", "of", "with", "by", "about", "we", "have", "actually",
))

# Checked in this order; the first group with a hit decides the query type.
QUERY_RULES = (
    (QueryType.STATUS, tuple(re.compile(p) for p in STATUS_PATTERNS)),
    (QueryType.LIST, tuple(re.compile(p) for p in LIST_PATTERNS)),
    (QueryType.SEARCH, tuple(re.compile(p) for p in SEARCH_PATTERNS)),
)

_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")


@dataclass(frozen=True)
class ClassificationResult:
    content_type: ContentType
    search_terms: Optional[str]
    query_type: QueryType

    @property
    def needs_database(self):
        return self.content_type != ContentType.GENERAL

    def to_dict(self):
        return {
            "contentType": self.content_type.value,
            "queryType": self.query_type.value,
            "searchTerms": self.search_terms or "",
            "needsDatabase": self.needs_database,
        }

    def __str__(self):
        return (
            f"ClassificationResult(contentType={self.content_type.value}, "
            f"searchTerms='{self.search_terms}', queryType={self.query_type.value})"
        )


GENERAL_RESULT = ClassificationResult(ContentType.GENERAL, None, QueryType.GENERAL)


def _keyword_score(message, keywords):
    return sum(1 for keyword in keywords if keyword in message)


def determine_content_type(message):
    material_score = _keyword_score(message, MATERIAL_KEYWORDS)
    assignment_score = _keyword_score(message, ASSIGNMENT_KEYWORDS)

    if material_score > assignment_score and material_score > 0:
        return ContentType.MATERIALS
    if assignment_score > material_score and assignment_score > 0:
        return ContentType.ASSIGNMENTS
    if material_score > 0 or assignment_score > 0:
        # Tie: lean on the more specific words.
        if "due" in message or "submit" in message or "homework" in message:
            return ContentType.ASSIGNMENTS
        if "study" in message or "learn" in message or "read" in message:
            return ContentType.MATERIALS
    return ContentType.GENERAL


def determine_query_type(message):
    for query_type, patterns in QUERY_RULES:
        if any(pattern.search(message) for pattern in patterns):
            return query_type
    return QueryType.GENERAL


def extract_search_terms(message, content_type):
    if content_type == ContentType.MATERIALS:
        excluded = MATERIAL_KEYWORDS
    elif content_type == ContentType.ASSIGNMENTS:
        excluded = ASSIGNMENT_KEYWORDS
    else:
        excluded = ()

    words = []
    for token in message.split():
        word = _NON_ALNUM_RE.sub("", token).lower()
        if len(word) <= 2 or word in STOP_WORDS or word in excluded:
            continue
        words.append(word)

    terms = " ".join(words).strip()
    return terms or None


def classify(message):
    """Classify a free-text chat message. Pure and deterministic."""
    if message is None:
        return GENERAL_RESULT
    if not isinstance(message, str):
        raise ClassificationError(f"Cannot classify message of type {type(message).__name__}")
    if not message.strip():
        return GENERAL_RESULT

    text = message.lower().strip()
    content_type = determine_content_type(text)
    query_type = determine_query_type(text)
    search_terms = extract_search_terms(text, content_type)

    result = ClassificationResult(content_type, search_terms, query_type)
    logger.info("Analysis result: %s", result)
    return result

"""
Shared fixtures: a temporary SQLite course store, a recording stub generator
and a Flask test client wired to both.
"""

import pytest

from gemini_gateway.app import create_app
from gemini_gateway.config import Settings
from gemini_gateway.datastore import SQLiteCourseStore

MATERIALS = [
    {
        "id": "m1",
        "date_created": "2024-01-10 09:00:00",
        "created_by_name": "Dr. Smith",
        "course": "Java Programming",
        "file_name": "java_intro.pdf",
        "uploaded_at": "2024-01-10",
        "description": "Introduction to Java programming",
    },
    {
        "id": "m2",
        "date_created": "2024-01-12 09:00:00",
        "course": "Data Science",
        "file_name": "pandas_basics.docx",
        "description": "Working with pandas dataframes",
    },
    {
        "id": "m3",
        "date_created": "2024-01-15 09:00:00",
        "course": "Java Programming",
        "file_name": "oop_notes.txt",
        "description": "Object oriented design",
    },
]

ASSIGNMENTS = [
    {
        "id": "a1",
        "date_created": "2024-01-05 10:00:00",
        "title": "Java Loops Homework",
        "course": "Java Programming",
        "due_date": "2024-02-01",
        "completion": "no",
        "student_name": "Alice",
        "answer": "A for loop repeats a block a fixed number of times.",
    },
    {
        "id": "a2",
        "date_created": "2024-01-06 10:00:00",
        "title": "Pandas Project",
        "course": "Data Science",
        "due_date": "2024-01-20",
        "completion": "yes",
        "grade": "A",
        "teacher_remarks": "Great work",
        "student_name": "Bob",
    },
    {
        "id": "a3",
        "date_created": "2024-01-07 10:00:00",
        "title": "Reflection Essay",
        "course": "Data Science",
        "completion": "no",
        "student_name": "Carol",
        "uploaded_file": "essay_answer.txt",
    },
]


class StubGenerator:
    """Records every prompt; replies with ``reply`` or echoes the prompt."""

    def __init__(self, reply=None, error=None, configured=True):
        self.reply = reply
        self.error = error
        self.configured = configured
        self.calls = []

    def generate(self, prompt, config):
        self.calls.append((prompt, config))
        if self.error is not None:
            raise self.error
        return prompt if self.reply is None else self.reply

    @property
    def prompts(self):
        return [prompt for prompt, _ in self.calls]

    def api_key_status(self):
        return "configured (stub)" if self.configured else "not_configured"


@pytest.fixture
def store(tmp_path):
    course_store = SQLiteCourseStore(str(tmp_path / "gateway.db"))
    course_store.init_schema()
    return course_store


@pytest.fixture
def seeded_store(store):
    for record in MATERIALS:
        store.insert_material(record)
    for record in ASSIGNMENTS:
        store.insert_assignment(record)
    return store


@pytest.fixture
def generator():
    return StubGenerator()


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path, upload_dir):
    return Settings(
        gemini_api_key="test-key-0123456789",
        database_path=str(tmp_path / "gateway.db"),
        upload_dir=str(upload_dir),
        batch_delay_seconds=0,
        log_level="DEBUG",
    )


@pytest.fixture
def app(settings, seeded_store, generator):
    flask_app = create_app(settings, store=seeded_store, generator=generator)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()

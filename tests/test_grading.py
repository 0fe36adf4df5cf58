"""
Tests for auto-grading
"""
import json

import pytest

from gemini_gateway.documents import DocumentLocator
from gemini_gateway.errors import GenerationError, NotFoundError
from gemini_gateway.grading import (
    GRADING_CONFIG,
    AutoGrader,
    combined_answer,
    parse_grading_response,
    split_submission_files,
)

from conftest import StubGenerator

GRADE_JSON = json.dumps({
    "grade": "B",
    "percentage": 84,
    "remarks": "Clear explanation of loops.",
    "strengths": ["Accurate definitions", "Good examples"],
    "improvements": ["Discuss loop termination"],
})


class TestSubmissionHelpers:
    """File classification and answer merging"""

    @pytest.mark.parametrize("record, expected", [
        ({"uploaded_file": "student_answer.docx"}, (None, "student_answer.docx")),
        ({"uploaded_file": "Assignment3_questions.pdf"}, ("Assignment3_questions.pdf", None)),
        ({"uploaded_file": "week2.txt"}, (None, "week2.txt")),
        ({"questions_file": "q.pdf", "uploaded_file": "task_solution.pdf"}, ("q.pdf", "task_solution.pdf")),
        ({}, (None, None)),
    ])
    def test_split_submission_files(self, record, expected):
        assert split_submission_files(record) == expected

    def test_combined_answer(self):
        assert combined_answer({"answer": "first", "additional_answer": "second"}) == (
            "first\n\nAdditional Answer: second"
        )
        assert combined_answer({"additional_answer": "only"}) == "only"
        assert combined_answer({}) == ""


class TestParseGradingResponse:
    """AI reply parsing"""

    def test_fenced_json(self):
        result = parse_grading_response(f"```json\n{GRADE_JSON}\n```", "a1")
        assert result.grade == "B"
        assert result.percentage == 84
        assert result.strengths == ["Accurate definitions", "Good examples"]

    def test_fallback(self):
        result = parse_grading_response("Looks fine overall.", "a1")
        assert result.grade == "C"
        assert result.percentage == 75
        assert result.remarks == "AI Analysis: Looks fine overall."

    def test_unexpected_shapes_are_coerced(self):
        result = parse_grading_response('{"grade": "A", "percentage": Infinity, "strengths": 5}', "a1")

        assert result.grade == "A"
        assert result.percentage == 75
        assert result.strengths == ["5"]
        assert result.improvements == []

    def test_full_remarks(self):
        remarks = parse_grading_response(GRADE_JSON, "a1").full_remarks()
        assert remarks.startswith("Clear explanation of loops.")
        assert "\n\nStrengths: Accurate definitions, Good examples" in remarks
        assert "\n\nAreas for improvement: Discuss loop termination" in remarks
        assert "[AI Auto-Graded on " in remarks


class TestAutoGrader:
    """Grading against the seeded store"""

    def setup_method(self):
        self.generator = StubGenerator(reply=GRADE_JSON)

    def _grader(self, store, upload_dir):
        return AutoGrader(store, self.generator, DocumentLocator(str(upload_dir)), batch_delay=0)

    def test_grade_and_save(self, seeded_store, upload_dir):
        result = self._grader(seeded_store, upload_dir).grade_assignment("a1")

        assert result.grade == "B"
        assert result.saved is True
        saved = seeded_store.get_assignment("a1")
        assert saved["grade"] == "B"
        assert saved["completion"] == "yes"
        assert "[AI Auto-Graded on " in saved["teacher_remarks"]

        prompt, config = self.generator.calls[0]
        assert config == GRADING_CONFIG
        assert "Title: Java Loops Homework" in prompt
        assert "Student: Alice" in prompt
        assert "A for loop repeats" in prompt

    def test_preview_does_not_save(self, seeded_store, upload_dir):
        result = self._grader(seeded_store, upload_dir).grade_assignment("a1", save=False)

        assert result.saved is False
        assert "grade" not in seeded_store.get_assignment("a1")

    def test_answer_file_is_read(self, seeded_store, upload_dir):
        folder = upload_dir / "assignments" / "a3"
        folder.mkdir(parents=True)
        (folder / "essay_answer.txt").write_text("I learned to plan my time.", encoding="utf-8")

        self._grader(seeded_store, upload_dir).grade_assignment("a3")

        assert "Student's Answer File Content:\nI learned to plan my time." in self.generator.prompts[0]

    def test_unknown_assignment(self, seeded_store, upload_dir):
        with pytest.raises(NotFoundError) as excinfo:
            self._grader(seeded_store, upload_dir).grade_assignment("nope")
        assert excinfo.value.status_code == 404
        assert self.generator.calls == []

    def test_batch(self, seeded_store, upload_dir):
        summary = self._grader(seeded_store, upload_dir).grade_batch()

        assert summary["totalProcessed"] == 2
        assert summary["successCount"] == 2
        assert summary["errorCount"] == 0
        assert [entry["assignmentId"] for entry in summary["results"]] == ["a3", "a1"]
        assert seeded_store.get_ungraded_assignments() == []

    def test_batch_survives_odd_reply_shapes(self, seeded_store, upload_dir):
        self.generator.reply = '{"grade": "B", "percentage": 1e999, "strengths": 5, "improvements": false}'
        summary = self._grader(seeded_store, upload_dir).grade_batch()

        assert summary["successCount"] == 2
        assert {entry["percentage"] for entry in summary["results"]} == {75}

    def test_batch_records_failures(self, seeded_store, upload_dir):
        self.generator.error = GenerationError("Gemini call failed: 429")
        summary = self._grader(seeded_store, upload_dir).grade_batch(course="Java Programming")

        assert summary["totalProcessed"] == 1
        assert summary["errorCount"] == 1
        assert summary["results"][0]["status"] == "error"
        assert summary["results"][0]["error"] == "Gemini call failed: 429"

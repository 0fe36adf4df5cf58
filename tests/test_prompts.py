"""
Tests for prompt composition
"""
from gemini_gateway.content_analyzer import GENERAL_RESULT, classify
from gemini_gateway.context import RetrievedContext
from gemini_gateway.prompts import (
    PRE_UPLOAD_CONTENT_LIMIT,
    build_evaluation_prompt,
    build_grading_prompt,
    compose_chat_prompt,
)

CONTEXT = RetrievedContext("DATABASE CONTEXT - All Assignments:\nAvailable Assignments:\n\n1. Title: Loops\n\n", 1)


class TestComposeChatPrompt:
    """Chat prompt layout"""

    def test_is_deterministic(self):
        classification = classify("show me all assignments")
        first = compose_chat_prompt("show me all assignments", "earlier turns", CONTEXT, classification)
        second = compose_chat_prompt("show me all assignments", "earlier turns", CONTEXT, classification)
        assert first == second

    def test_section_order(self):
        prompt = compose_chat_prompt("show me all assignments", "User: hi", CONTEXT, classify("show me all assignments"))

        preamble = prompt.index("You are an intelligent educational assistant")
        database = prompt.index("IMPORTANT: I have retrieved the following current information")
        history = prompt.index("Previous conversation context:\nUser: hi")
        question = prompt.index("User's question: show me all assignments")
        tail = prompt.index("This question is about assignments.")
        assert preamble < database < history < question < tail
        assert "including due dates and status." in prompt

    def test_empty_context_skips_database_block(self):
        prompt = compose_chat_prompt("upcoming homework", None, RetrievedContext(), classify("upcoming homework"))
        assert "IMPORTANT" not in prompt
        assert "suggest checking the learning system" in prompt

    def test_history_sentinel_is_skipped(self):
        for history in ("[]", "  ", "", None):
            prompt = compose_chat_prompt("hello", history, None, GENERAL_RESULT)
            assert "Previous conversation context" not in prompt

    def test_general_tail(self):
        prompt = compose_chat_prompt("hello", None, None, GENERAL_RESULT)
        assert prompt.endswith("Please provide a helpful response to this educational question.")

    def test_materials_tail_with_context(self):
        context = RetrievedContext("DATABASE CONTEXT - All Course Materials:\nNo course materials found.\n")
        prompt = compose_chat_prompt("list courses", None, context, classify("list courses"))
        assert prompt.endswith("provide specific details about available materials.")

    def test_accepts_plain_string_context(self):
        prompt = compose_chat_prompt("list courses", None, "some context\n", classify("list courses"))
        assert "some context" in prompt


class TestGradingPrompt:
    """Grading prompt content"""

    def test_includes_both_files(self):
        submission = {"title": "Loops", "course": "Java", "student_name": "Alice", "answer": "for i in range"}
        prompt = build_grading_prompt(submission, "Q1. Explain loops", "A1. Loops repeat")

        assert "Title: Loops" in prompt
        assert "Questions File Content:\nQ1. Explain loops" in prompt
        assert "Student's Answer File Content:\nA1. Loops repeat" in prompt
        assert "You have access to both the original questions and the student's answers." in prompt
        assert '"grade": "A/B/C/D/F"' in prompt

    def test_missing_file_is_reported_not_quoted(self):
        prompt = build_grading_prompt({"answer": ""}, "", "File not found: a.txt for assignments a1.")
        assert "Questions File: [No questions file provided]" in prompt
        assert "Student Text Answer: [No text answer provided]" in prompt
        assert "Student's Answer File: File not found: a.txt" in prompt
        assert "IMPORTANT" not in prompt


class TestEvaluationPrompt:
    """Material evaluation prompt content"""

    def test_truncates_long_content(self):
        content = "x" * (PRE_UPLOAD_CONTENT_LIMIT + 500)
        prompt = build_evaluation_prompt("Java", "Intro", "intro.txt", content, "context", is_pre_upload=True)

        assert "x" * PRE_UPLOAD_CONTENT_LIMIT + "\n... [content truncated]" in prompt
        assert "x" * (PRE_UPLOAD_CONTENT_LIMIT + 1) not in prompt
        assert "PRE-UPLOAD EVALUATION GUIDANCE" in prompt

    def test_lists_criteria_and_bands(self):
        prompt = build_evaluation_prompt("Java", None, None, "", "This is the first material for the course: Java")

        assert "1. Educational Value (25%)" in prompt
        assert "5. Completeness (15%)" in prompt
        assert "- 80-89%: Good material, minor improvements suggested" in prompt
        assert "Description: No description provided" in prompt
        assert "[No file content available" in prompt
        assert "PRE-UPLOAD" not in prompt

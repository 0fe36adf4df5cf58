"""AI-assisted grading of stored assignment submissions."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from .errors import GatewayError, NotFoundError
from .gemini import GenerationConfig, as_int, as_list, json_from_text
from .prompts import build_grading_prompt

logger = logging.getLogger(__name__)

GRADING_CONFIG = GenerationConfig(temperature=0.3, max_output_tokens=1500)
UPLOAD_FOLDER = "assignments"

FALLBACK_GRADE = "C"
FALLBACK_PERCENTAGE = 75

QUESTION_HINTS = ("question", "assignment", "problem", "task")
ANSWER_HINTS = ("answer", "solution", "response", "submission")


def _timestamp():
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


@dataclass
class GradingResult:
    assignment_id: str
    grade: str
    percentage: int
    remarks: str
    strengths: List[str] = field(default_factory=list)
    improvements: List[str] = field(default_factory=list)
    ai_generated: bool = True
    saved: bool = False
    timestamp: str = field(default_factory=_timestamp)

    def full_remarks(self):
        """Remarks as written back to the assignment record."""
        remarks = self.remarks or ""
        if self.strengths:
            remarks += "\n\nStrengths: " + ", ".join(self.strengths)
        if self.improvements:
            remarks += "\n\nAreas for improvement: " + ", ".join(self.improvements)
        remarks += f"\n\n[AI Auto-Graded on {_timestamp()}]"
        return remarks

    def to_dict(self):
        return {
            "assignmentId": self.assignment_id,
            "grade": self.grade,
            "percentage": self.percentage,
            "remarks": self.remarks,
            "strengths": self.strengths,
            "improvements": self.improvements,
            "aiGenerated": self.ai_generated,
            "saved": self.saved,
            "timestamp": self.timestamp,
        }


def split_submission_files(record):
    """
    Work out which stored file holds the teacher's questions and which the
    student's answers. Returns ``(questions_file, answers_file)``.
    """
    questions_file = (record.get("questions_file") or "").strip() or None
    answers_file = None

    uploaded = (record.get("uploaded_file") or "").strip()
    if uploaded:
        lowered = uploaded.lower()
        if any(hint in lowered for hint in QUESTION_HINTS) and questions_file is None:
            questions_file = uploaded
        elif any(hint in lowered for hint in ANSWER_HINTS):
            answers_file = uploaded
        else:
            # unclear names are treated as the student's work
            answers_file = uploaded
    return questions_file, answers_file


def combined_answer(record):
    primary = (record.get("answer") or "").strip()
    secondary = (record.get("additional_answer") or "").strip()
    if primary and secondary:
        return f"{primary}\n\nAdditional Answer: {secondary}"
    return primary or secondary


def parse_grading_response(raw, assignment_id):
    parsed = json_from_text(raw)
    if isinstance(parsed, dict) and parsed.get("grade"):
        return GradingResult(
            assignment_id=assignment_id,
            grade=str(parsed.get("grade")).strip(),
            percentage=as_int(parsed.get("percentage"), FALLBACK_PERCENTAGE),
            remarks=str(parsed.get("remarks") or ""),
            strengths=as_list(parsed.get("strengths")),
            improvements=as_list(parsed.get("improvements")),
        )

    logger.warning("Failed to parse grading JSON, using raw response")
    return GradingResult(
        assignment_id=assignment_id,
        grade=FALLBACK_GRADE,
        percentage=FALLBACK_PERCENTAGE,
        remarks=f"AI Analysis: {raw}",
    )


class AutoGrader:
    def __init__(self, store, generator, documents, batch_delay=1.0):
        self.store = store
        self.generator = generator
        self.documents = documents
        self.batch_delay = batch_delay

    def grade_assignment(self, assignment_id, save=True):
        logger.info("Starting auto-grading for assignment: %s", assignment_id)
        record = self.store.get_assignment(assignment_id)
        if record is None:
            raise NotFoundError(f"Assignment not found: {assignment_id}", error_code="ASSIGNMENT_NOT_FOUND")

        questions_file, answers_file = split_submission_files(record)
        questions_content = ""
        answers_content = ""
        if questions_file:
            questions_content = self.documents.extract_text(questions_file, assignment_id, UPLOAD_FOLDER)
        if answers_file:
            answers_content = self.documents.extract_text(answers_file, assignment_id, UPLOAD_FOLDER)

        submission = {
            "title": record.get("title"),
            "course": record.get("course"),
            "student_name": record.get("student_name"),
            "context": f"Assignment: {record.get('title')}" if record.get("title") else None,
            "answer": combined_answer(record),
        }
        prompt = build_grading_prompt(submission, questions_content, answers_content)
        raw = self.generator.generate(prompt, GRADING_CONFIG)

        result = parse_grading_response(raw, assignment_id)
        if save:
            self.store.save_grading_result(assignment_id, result.grade, result.full_remarks())
            result.saved = True

        logger.info("Auto-grading completed for assignment %s: %s (%s%%)",
                    assignment_id, result.grade, result.percentage)
        return result

    def grade_batch(self, course=None, status=None, limit=None):
        """Grade every ungraded assignment that matches; one failure does not stop the rest."""
        assignments = self.store.get_ungraded_assignments(course, status, limit)
        results = []
        success_count = 0
        error_count = 0

        for index, record in enumerate(assignments):
            assignment_id = record.get("id")
            entry = {
                "assignmentId": assignment_id,
                "title": record.get("title", ""),
                "studentName": record.get("student_name", ""),
            }
            try:
                graded = self.grade_assignment(assignment_id)
            except GatewayError as exc:
                logger.error("Error grading assignment %s: %s", assignment_id, exc)
                entry.update(status="error", error=exc.message)
                error_count += 1
            else:
                entry.update(
                    status="success",
                    grade=graded.grade,
                    percentage=graded.percentage,
                    remarks=graded.remarks,
                )
                success_count += 1
            results.append(entry)

            if self.batch_delay and index < len(assignments) - 1:
                time.sleep(self.batch_delay)

        return {
            "totalProcessed": len(assignments),
            "successCount": success_count,
            "errorCount": error_count,
            "results": results,
        }

"""Course material quality evaluation, before or after upload."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from .errors import GatewayError, MissingParameterError, RetrievalError
from .gemini import GenerationConfig, as_int, as_list, json_from_text
from .prompts import build_evaluation_prompt

logger = logging.getLogger(__name__)

EVALUATION_CONFIG = GenerationConfig(temperature=0.2, max_output_tokens=2000)
UPLOAD_FOLDER = "materials"
COURSE_CONTEXT_LIMIT = 5
ENHANCEMENT_THRESHOLD = 80

FALLBACK_PERCENTAGE = 75
FALLBACK_RATING = "Average"

CRITERIA = (
    ("educationalValue", "educational_value"),
    ("contentQuality", "content_quality"),
    ("studentSuitability", "student_suitability"),
    ("clarityOrganization", "clarity_organization"),
    ("completeness", "completeness"),
)


def _as_bool(value, default=False):
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return default


@dataclass
class EvaluationResult:
    course: str
    filename: str
    recommendation_percentage: int
    overall_rating: str
    is_recommended: bool
    evaluation_summary: str
    recommendations: str = ""
    strengths: List[str] = field(default_factory=list)
    improvements: List[str] = field(default_factory=list)
    educational_value: int = 0
    content_quality: int = 0
    student_suitability: int = 0
    clarity_organization: int = 0
    completeness: int = 0
    timestamp: str = field(default_factory=lambda: datetime.now().strftime("%Y-%m-%d %H:%M:%S"))

    @property
    def requires_enhancement(self):
        return self.recommendation_percentage < ENHANCEMENT_THRESHOLD

    def to_dict(self):
        data = {
            "course": self.course,
            "filename": self.filename,
            "recommendationPercentage": self.recommendation_percentage,
            "overallRating": self.overall_rating,
            "isRecommended": self.is_recommended,
            "requiresEnhancement": self.requires_enhancement,
            "evaluationSummary": self.evaluation_summary,
            "recommendations": self.recommendations,
            "strengths": self.strengths,
            "improvements": self.improvements,
            "timestamp": self.timestamp,
        }
        data["detailedScores"] = {key: getattr(self, attr) for key, attr in CRITERIA}
        return data


def parse_evaluation_response(raw, course, filename):
    parsed = json_from_text(raw)
    if isinstance(parsed, dict) and "recommendationPercentage" in parsed:
        percentage = as_int(parsed.get("recommendationPercentage"), FALLBACK_PERCENTAGE)
        result = EvaluationResult(
            course=course,
            filename=filename,
            recommendation_percentage=percentage,
            overall_rating=str(parsed.get("overallRating") or FALLBACK_RATING),
            is_recommended=_as_bool(parsed.get("isRecommended"), percentage >= ENHANCEMENT_THRESHOLD),
            evaluation_summary=str(parsed.get("evaluationSummary") or ""),
            recommendations=str(parsed.get("recommendations") or ""),
            strengths=as_list(parsed.get("strengths")),
            improvements=as_list(parsed.get("improvements")),
        )
        for key, attr in CRITERIA:
            setattr(result, attr, as_int(parsed.get(key)))
        return result

    logger.warning("Failed to parse evaluation JSON, using raw response")
    return EvaluationResult(
        course=course,
        filename=filename,
        recommendation_percentage=FALLBACK_PERCENTAGE,
        overall_rating=FALLBACK_RATING,
        is_recommended=False,
        evaluation_summary=f"AI Analysis: {raw}",
        recommendations="Please review the material manually for quality assessment.",
    )


class MaterialEvaluator:
    def __init__(self, store, generator, documents, batch_delay=1.0):
        self.store = store
        self.generator = generator
        self.documents = documents
        self.batch_delay = batch_delay

    def course_context(self, course):
        if not course:
            return "No course specified."
        try:
            existing = self.store.get_materials_by_course(course)
        except RetrievalError as exc:
            logger.error("Error getting course context: %s", exc)
            return "Unable to retrieve existing course materials for context."

        if not existing:
            return f"This is the first material for the course: {course}"

        context = f"Existing materials in course '{course}':\n"
        for material in existing[:COURSE_CONTEXT_LIMIT]:
            context += f"- {material.get('file_name', 'unnamed file')}"
            if material.get("description"):
                context += f" ({material['description']})"
            context += "\n"
        return context

    def evaluate_material(self, material_id=None, course=None, description=None, filename=None,
                          file_content=None, pre_upload=False):
        if not any(value and str(value).strip() for value in (material_id, filename, description)):
            raise MissingParameterError("materialId, filename or description is required")

        logger.info("Starting material evaluation for: %s%s", filename,
                    " (pre-upload)" if pre_upload else "")

        content = ""
        if file_content and file_content.strip():
            content = file_content
            logger.info("Using direct file content: %d characters", len(content))
        elif filename and filename.strip() and not pre_upload:
            content = self.documents.extract_text(filename, material_id, UPLOAD_FOLDER)

        prompt = build_evaluation_prompt(
            course, description, filename, content, self.course_context(course), pre_upload,
        )
        raw = self.generator.generate(prompt, EVALUATION_CONFIG)
        result = parse_evaluation_response(raw, course, filename)

        logger.info("Material evaluation completed. Recommendation: %s%%", result.recommendation_percentage)
        return result

    def evaluate_batch(self, course=None, limit=None):
        materials = self.store.get_unevaluated_materials(course, limit)
        results = []
        success_count = 0
        error_count = 0
        recommended_count = 0
        enhancement_count = 0

        for index, material in enumerate(materials):
            entry = {
                "materialId": material.get("id"),
                "course": material.get("course", ""),
                "filename": material.get("file_name", ""),
            }
            try:
                evaluated = self.evaluate_material(
                    material.get("id"),
                    material.get("course"),
                    material.get("description"),
                    material.get("file_name"),
                )
            except GatewayError as exc:
                logger.error("Error evaluating material %s: %s", material.get("id"), exc)
                entry.update(status="error", error=exc.message)
                error_count += 1
            else:
                entry.update(
                    status="success",
                    recommendationPercentage=evaluated.recommendation_percentage,
                    overallRating=evaluated.overall_rating,
                    isRecommended=evaluated.is_recommended,
                    requiresEnhancement=evaluated.requires_enhancement,
                )
                success_count += 1
                if evaluated.is_recommended:
                    recommended_count += 1
                if evaluated.requires_enhancement:
                    enhancement_count += 1
            results.append(entry)

            if self.batch_delay and index < len(materials) - 1:
                time.sleep(self.batch_delay)

        return {
            "totalProcessed": len(materials),
            "successCount": success_count,
            "errorCount": error_count,
            "recommendedCount": recommended_count,
            "needsEnhancementCount": enhancement_count,
            "results": results,
        }

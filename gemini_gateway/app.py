import logging

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import ClientDisconnected, HTTPException

from . import __version__
from .chat import ChatService
from .config import load_settings
from .context import ContextRetriever, summarize_assignments, summarize_materials
from .datastore import SQLiteCourseStore, clamp_limit
from .documents import DocumentLocator
from .errors import ConfigurationError, GatewayError, MissingParameterError
from .evaluation import MaterialEvaluator
from .gemini import GeminiClient
from .grading import AutoGrader
from .logging_setup import configure_logging
from .params import MASKED_KEYS, PROMPT_KEY, extract_params, read_request_body
from .responses import error_payload, now_millis

logger = logging.getLogger(__name__)

CORS_METHODS = ["GET", "POST", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Authorization"]

HISTORY_LIMIT = 50


# ===========================
# Request helpers
# ===========================

def _raw_request():
    """(query_string, content_type, body) for the current request."""
    body = read_request_body(request.get_data) if request.method == "POST" else ""
    query = request.query_string.decode("utf-8", errors="replace")
    return query, request.headers.get("Content-Type", ""), body


def _request_params(tolerant=False):
    query, content_type, body = _raw_request()
    return extract_params(request.method, content_type, query, body, tolerant=tolerant)


def _param(params, name):
    return str(params.get(name) or "").strip()


def _require_generator(generator):
    if not getattr(generator, "configured", True):
        raise ConfigurationError("Gemini API key not configured")


def _masked(params):
    return {
        key: (f"[content data - {len(value)} chars]" if key in MASKED_KEYS else value)
        for key, value in params.items()
    }


# ===========================
# Application factory
# ===========================

def create_app(settings=None, store=None, generator=None):
    """
    Build the gateway application.

    ``store`` and ``generator`` default to the SQLite store and Gemini client
    described by ``settings``; tests pass their own.
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    if store is None:
        store = SQLiteCourseStore(settings.database_path)
        store.init_schema()
    if generator is None:
        generator = GeminiClient.from_settings(settings)

    documents = DocumentLocator(settings.upload_dir)
    chat_service = ChatService(store, generator, settings.gemini_model)
    retriever = ContextRetriever(store)
    grader = AutoGrader(store, generator, documents, batch_delay=settings.batch_delay_seconds)
    evaluator = MaterialEvaluator(store, generator, documents, batch_delay=settings.batch_delay_seconds)

    app = Flask(__name__)
    app.config["GATEWAY_SETTINGS"] = settings
    CORS(
        app,
        resources={r"/*": {"origins": "*"}},
        supports_credentials=False,
        allow_headers=CORS_HEADERS,
        methods=CORS_METHODS,
    )

    @app.before_request
    def preflight():
        # routes list OPTIONS explicitly, so answer it before the view runs
        if request.method == "OPTIONS":
            return "", 200
        return None

    # ===========================
    # Error handlers
    # ===========================

    @app.errorhandler(GatewayError)
    def handle_gateway_error(exc):
        logger.warning("%s: %s", exc.error_code, exc.message)
        return jsonify(error_payload(exc.message, exc.error_code)), exc.status_code

    @app.errorhandler(ClientDisconnected)
    def handle_disconnect(exc):
        logger.error("Client disconnected while sending body: %s", exc)
        return jsonify(error_payload("Request body could not be read", "MALFORMED_REQUEST")), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        code = (exc.name or "HTTP_ERROR").upper().replace(" ", "_")
        return jsonify(error_payload(exc.description or exc.name, code)), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        logger.exception("Unhandled error: %s", exc)
        return jsonify(error_payload(f"Server error: {exc}", "INTERNAL_ERROR")), 500

    # ===========================
    # Chat
    # ===========================

    @app.route("/chat", methods=["GET", "POST", "OPTIONS"])
    def chat():
        query, content_type, body = _raw_request()
        result = chat_service.handle_chat(query, content_type, body, method=request.method)
        return jsonify(result.to_dict()), 200

    @app.route("/health", methods=["GET"])
    def health():
        payload = {
            "status": "healthy",
            "server": "gateway",
            "version": __version__,
            "timestamp": now_millis(),
            "model": settings.gemini_model,
            "apiKey": generator.api_key_status() if hasattr(generator, "api_key_status") else "configured",
            "database": "connected" if store.ping() else "disconnected",
        }
        if request.args.get("deep") == "true" and hasattr(generator, "test_connection"):
            payload["apiTest"] = generator.test_connection()
        return jsonify(payload), 200

    @app.route("/analyze", methods=["GET", "POST", "OPTIONS"])
    def analyze():
        params = _request_params()
        message = _param(params, "message") or _param(params, PROMPT_KEY)
        if not message:
            raise MissingParameterError("message parameter is required")

        classification = chat_service.classify(message)
        context = retriever.retrieve(classification)
        return jsonify({
            "status": "success",
            "message": message,
            "analysis": classification.to_dict(),
            "databaseContext": context.text,
            "recordCount": context.record_count,
            "timestamp": now_millis(),
        }), 200

    @app.route("/debug", methods=["GET", "POST", "OPTIONS"])
    def debug():
        params = _request_params()
        issues = {}
        if not params:
            issues["empty_params"] = "No parameters were parsed from the request"
        if PROMPT_KEY not in params:
            issues["missing_userPrompt"] = "userPrompt parameter not found (also checked for 'message' and 'text')"

        return jsonify({
            "status": "debug_success",
            "message": "Debug information collected",
            "data": {
                "method": request.method,
                "uri": request.full_path.rstrip("?"),
                "contentType": request.headers.get("Content-Type"),
                "parsedParameters": _masked(params),
                "parameterCount": len(params),
                "potentialIssues": issues,
            },
            "timestamp": now_millis(),
        }), 200

    # ===========================
    # Course data
    # ===========================

    @app.route("/db/materials", methods=["GET"])
    def db_materials():
        search = request.args.get("search", "").strip()
        course = request.args.get("course", "").strip()

        if search:
            materials = store.search_materials(search)
            query_type = "search"
        elif course:
            materials = store.get_materials_by_course(course)
            query_type = "course"
        else:
            materials = store.get_all_materials()
            query_type = "all"

        payload = {"status": "success", "queryType": query_type}
        if search:
            payload["searchTerm"] = search
        if course:
            payload["course"] = course
        payload.update(
            count=len(materials),
            data=materials,
            summary=summarize_materials(materials, search or None),
            timestamp=now_millis(),
        )
        return jsonify(payload), 200

    @app.route("/db/assignments", methods=["GET"])
    def db_assignments():
        search = request.args.get("search", "").strip()
        status = request.args.get("status", "").strip()
        course = request.args.get("course", "").strip()

        if request.args.get("upcoming") == "true":
            assignments = store.get_upcoming_assignments()
            query_type = "upcoming"
        elif search:
            assignments = store.search_assignments(search)
            query_type = "search"
        elif status:
            assignments = store.get_assignments_by_status(status)
            query_type = "status"
        elif course:
            assignments = store.get_assignments_by_course(course)
            query_type = "course"
        else:
            assignments = store.get_all_assignments()
            query_type = "all"

        payload = {"status": "success", "queryType": query_type}
        if search:
            payload["searchTerm"] = search
        if status:
            payload["completionStatus"] = status
        if course:
            payload["course"] = course
        payload.update(
            count=len(assignments),
            data=assignments,
            summary=summarize_assignments(assignments, search or None),
            timestamp=now_millis(),
        )
        return jsonify(payload), 200

    @app.route("/db/statistics", methods=["GET"])
    def db_statistics():
        return jsonify({
            "status": "success",
            "data": store.get_course_statistics(),
            "timestamp": now_millis(),
        }), 200

    @app.route("/db/chat-history", methods=["GET"])
    def db_chat_history():
        session_id = request.args.get("sessionId", "").strip()
        if not session_id:
            raise MissingParameterError("sessionId parameter is required")
        limit = clamp_limit(request.args.get("limit"), HISTORY_LIMIT, 500)

        history = store.get_chat_history(session_id, limit)
        return jsonify({
            "status": "success",
            "sessionId": session_id,
            "count": len(history),
            "data": history,
            "timestamp": now_millis(),
        }), 200

    # ===========================
    # Grading
    # ===========================

    @app.route("/grade", methods=["POST", "OPTIONS"])
    def grade():
        params = _request_params()
        assignment_id = _param(params, "assignmentId")
        if not assignment_id:
            raise MissingParameterError("assignmentId parameter is required", error_code="MISSING_ASSIGNMENT_ID")
        _require_generator(generator)

        save = _param(params, "mode") != "preview"
        logger.info("Grading assignment %s (mode: %s)", assignment_id, "save" if save else "preview")
        result = grader.grade_assignment(assignment_id, save=save)
        return jsonify({
            "status": "success",
            "message": "Assignment graded successfully",
            "assignmentId": assignment_id,
            "mode": "saved" if save else "preview",
            "result": result.to_dict(),
            "timestamp": now_millis(),
        }), 200

    @app.route("/grade/batch", methods=["GET", "POST", "OPTIONS"])
    def grade_batch():
        params = _request_params()
        _require_generator(generator)

        summary = grader.grade_batch(
            course=_param(params, "course") or None,
            status=_param(params, "status") or None,
            limit=params.get("limit"),
        )
        if not summary["totalProcessed"]:
            return jsonify({
                "status": "success",
                "message": "No ungraded assignments found",
                "results": [],
                "timestamp": now_millis(),
            }), 200

        return jsonify({
            "status": "success",
            "message": "Batch grading completed",
            "totalAssignments": summary["totalProcessed"],
            "successCount": summary["successCount"],
            "errorCount": summary["errorCount"],
            "results": summary["results"],
            "timestamp": now_millis(),
        }), 200

    # ===========================
    # Material evaluation
    # ===========================

    @app.route("/evaluate", methods=["POST", "OPTIONS"])
    def evaluate():
        params = _request_params(tolerant=True)
        material_id = _param(params, "materialId")
        filename = _param(params, "filename")
        description = _param(params, "description")
        if not (material_id or filename or description):
            raise MissingParameterError("At least one of materialId, filename, or description is required")
        _require_generator(generator)

        pre_upload = _param(params, "preUpload") == "true"
        result = evaluator.evaluate_material(
            material_id or "temp",
            _param(params, "course") or None,
            description or None,
            filename or None,
            file_content=params.get("fileContent"),
            pre_upload=pre_upload,
        )
        return jsonify({
            "status": "success",
            "message": "Material evaluation completed" + (" (pre-upload)" if pre_upload else ""),
            "recommendation": result.recommendation_percentage,
            "isRecommended": result.is_recommended,
            "requiresEnhancement": result.requires_enhancement,
            "isPreUpload": pre_upload,
            "result": result.to_dict(),
            "timestamp": now_millis(),
        }), 200

    @app.route("/evaluate/batch", methods=["GET", "POST", "OPTIONS"])
    def evaluate_batch():
        params = _request_params(tolerant=True)
        _require_generator(generator)

        summary = evaluator.evaluate_batch(
            course=_param(params, "course") or None,
            limit=params.get("limit"),
        )
        if not summary["totalProcessed"]:
            return jsonify({
                "status": "success",
                "message": "No materials found for evaluation",
                "results": [],
                "timestamp": now_millis(),
            }), 200

        return jsonify({
            "status": "success",
            "message": "Batch material evaluation completed",
            "totalMaterials": summary["totalProcessed"],
            "successCount": summary["successCount"],
            "errorCount": summary["errorCount"],
            "recommendedCount": summary["recommendedCount"],
            "needsEnhancementCount": summary["needsEnhancementCount"],
            "results": summary["results"],
            "timestamp": now_millis(),
        }), 200

    return app


"""The chat pipeline: parameters, classification, retrieval, prompt, generation, packaging."""

import logging

from . import content_analyzer
from .config import DEFAULT_MODEL
from .context import ContextRetriever, RetrievedContext
from .errors import ConfigurationError, MissingParameterError
from .gemini import CHAT_CONFIG
from .logging_setup import preview
from .params import PROMPT_KEY, extract_params
from .prompts import compose_chat_prompt
from .responses import ChatResponse

logger = logging.getLogger(__name__)


class ChatService:
    """
    Runs one chat request end to end.

    ``store`` is a CourseDataStore; ``generator`` is anything with a
    ``generate(prompt, config)`` method (normally a GeminiClient).
    """

    def __init__(self, store, generator, model=DEFAULT_MODEL):
        self.store = store
        self.generator = generator
        self.model = model
        self.retriever = ContextRetriever(store)

    def handle_chat(self, raw_query, content_type, raw_body, prior_conversation=None,
                    session_id=None, method="POST"):
        params = extract_params(method, content_type, raw_query, raw_body)

        user_prompt = params.get(PROMPT_KEY, "")
        if not user_prompt.strip():
            logger.error("No userPrompt provided. Available parameters: %s", sorted(params))
            raise MissingParameterError(
                "userPrompt parameter is required",
                error_code="MISSING_PROMPT",
            )
        if not getattr(self.generator, "configured", True):
            logger.warning("Gemini API key not configured")
            raise ConfigurationError("Gemini API key not configured")

        if prior_conversation is None:
            prior_conversation = params.get("chatHistory")
        if session_id is None:
            session_id = params.get("sessionId")
        save_to_db = params.get("saveToDb", "false").strip().lower() == "true"

        logger.info("Processing chat request: %s", preview(user_prompt))

        classification = self.classify(user_prompt)

        used_database = False
        context = RetrievedContext()
        if classification.needs_database:
            used_database = True
            context = self.retriever.retrieve(classification)
            logger.info(
                "Database context retrieved: %d records (%d chars)",
                context.record_count, len(context.text),
            )

        prompt = compose_chat_prompt(user_prompt, prior_conversation, context, classification)
        answer = self.generator.generate(prompt, CHAT_CONFIG)

        saved = False
        if save_to_db and session_id:
            saved = self._save_conversation(session_id, user_prompt, answer)

        return ChatResponse(
            response=answer,
            session_id=session_id,
            saved_to_database=saved,
            database_enhanced=used_database,
            detected_content_type=classification.content_type,
            detected_query_type=classification.query_type,
            search_terms=classification.search_terms,
            model=self.model,
        )

    def classify(self, message):
        """Classify, falling back to GENERAL on any unexpected failure."""
        try:
            return content_analyzer.classify(message)
        except Exception:
            logger.exception("Error analyzing user query, continuing without database context")
            return content_analyzer.GENERAL_RESULT

    def _save_conversation(self, session_id, user_prompt, answer):
        try:
            self.store.save_chat_conversation(session_id, user_prompt, answer, self.model)
        except Exception as exc:
            logger.exception("Error saving chat to database: %s", exc)
            return False
        logger.info("Chat conversation saved for session: %s", session_id)
        return True

"""Gemini REST client."""

import json
import logging
import re
import time
from dataclasses import dataclass

import requests

from .config import DEFAULT_BASE_URL, DEFAULT_MODEL, PLACEHOLDER_API_KEY
from .errors import GenerationError
from .logging_setup import preview

logger = logging.getLogger(__name__)

NO_RESPONSE = "No response generated"


@dataclass(frozen=True)
class GenerationConfig:
    temperature: float = 0.7
    max_output_tokens: int = 1500
    top_p: float = 0.8
    top_k: int = 10


CHAT_CONFIG = GenerationConfig(temperature=0.7, max_output_tokens=1500)
CONNECTION_TEST_CONFIG = GenerationConfig(temperature=0.1, max_output_tokens=100)


def json_from_text(text):
    """Parse JSON content that may include markdown fences or surrounding prose."""
    if text is None:
        return None
    if isinstance(text, dict):
        return text
    raw = str(text).strip()
    if not raw:
        return None
    raw = re.sub(r"^```(?:json)?\s*", "", raw, flags=re.IGNORECASE)
    raw = re.sub(r"\s*```$", "", raw)
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        match = re.search(r"\{[\s\S]*\}", raw)
        if not match:
            return None
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            return None


def as_int(value, default=0):
    """Whole number from a parsed JSON field; NaN, Infinity and junk give ``default``."""
    try:
        return int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return default


def as_list(value):
    """List of strings from a parsed JSON field; a lone scalar becomes one entry."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(value)]


def parse_generate_response(data):
    """
    Pull the first candidate's text out of a generateContent response.

    Returns:
        tuple: (text, error_string)
    """
    candidates = data.get("candidates") or []
    if candidates:
        parts = (candidates[0].get("content") or {}).get("parts") or []
        if parts and "text" in parts[0]:
            return parts[0]["text"], None

    error = data.get("error")
    if error:
        message = error.get("message", "Unknown error") if isinstance(error, dict) else str(error)
        return None, f"API Error: {message}"

    logger.warning("No valid content found in response")
    return NO_RESPONSE, None


class GeminiClient:
    """Thin wrapper over ``{base_url}/{model}:generateContent``. No retries."""

    def __init__(self, api_key, model=DEFAULT_MODEL, base_url=DEFAULT_BASE_URL, timeout=60):
        self.api_key = (api_key or "").strip()
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings):
        return cls(
            settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout=settings.gemini_timeout,
        )

    @property
    def configured(self):
        return bool(self.api_key) and self.api_key != PLACEHOLDER_API_KEY

    def call_gemini(self, prompt, temperature=0.7, max_output_tokens=1500, top_p=0.8, top_k=10):
        """
        Call Gemini generateContent.

        Returns:
            tuple: (result_dict, error_string)
        """
        if not self.configured:
            return None, "Gemini API key is not configured (GEMINI_API_KEY)"

        url = f"{self.base_url}/{self.model}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_output_tokens,
                "topP": top_p,
                "topK": top_k,
            },
        }
        logger.info("Calling Gemini model %s (%d prompt chars)", self.model, len(prompt))
        logger.debug("Prompt preview: %s", preview(prompt))

        try:
            resp = requests.post(
                url,
                params={"key": self.api_key},
                headers={"Content-Type": "application/json"},
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Gemini call failed: %s", exc)
            return None, f"Gemini call failed: {exc}"

        if not resp.ok:
            logger.error("Gemini returned HTTP %s", resp.status_code)
            return None, f"Gemini call failed: {resp.status_code} {resp.text}"

        try:
            data = resp.json()
        except ValueError as exc:
            return None, f"Error parsing response: {exc}"

        content, error = parse_generate_response(data)
        if error:
            logger.error("Gemini returned an error: %s", error)
            return None, error

        usage = data.get("usageMetadata", {}) or {}
        return {
            "content": content,
            "model": data.get("modelVersion") or self.model,
            "tokens": {
                "prompt": usage.get("promptTokenCount", 0),
                "completion": usage.get("candidatesTokenCount", 0),
                "total": usage.get("totalTokenCount", 0),
            },
            "raw": data,
        }, None

    def generate(self, prompt, config=CHAT_CONFIG):
        """Return generated text; any failure raises GenerationError."""
        result, error = self.call_gemini(
            prompt,
            temperature=config.temperature,
            max_output_tokens=config.max_output_tokens,
            top_p=config.top_p,
            top_k=config.top_k,
        )
        if error:
            raise GenerationError(error)
        logger.info("Gemini response received: %s", preview(result["content"]))
        return result["content"]

    def test_connection(self):
        """Send a tiny prompt and report how it went."""
        result = {"timestamp": int(time.time() * 1000)}
        started = time.monotonic()
        reply, error = self.call_gemini(
            "Test connection. Respond with: API is working correctly.",
            temperature=CONNECTION_TEST_CONFIG.temperature,
            max_output_tokens=CONNECTION_TEST_CONFIG.max_output_tokens,
        )
        result["responseTime"] = int((time.monotonic() - started) * 1000)

        if error:
            result.update(success=False, status="failed", message=f"API connection failed: {error}")
            logger.warning("API connection test failed: %s", error)
            return result

        text = (reply.get("content") or "").strip()
        success = bool(text) and text != NO_RESPONSE
        result["response"] = text
        result["success"] = success
        result["status"] = "connected" if success else "failed"
        result["message"] = "API connection successful" if success else f"API connection failed: {text}"
        return result

    def api_key_status(self):
        key = self.api_key
        if not key:
            return "not_configured"
        if key == PLACEHOLDER_API_KEY:
            return "placeholder"
        if len(key) < 10:
            return "invalid_length"
        return f"configured ({key[:8]}...{key[-4:]})"

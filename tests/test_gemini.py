"""
Tests for the Gemini client
"""
from unittest.mock import Mock, patch

import pytest
import requests

from gemini_gateway.errors import GenerationError
from gemini_gateway.gemini import (
    NO_RESPONSE,
    GeminiClient,
    GenerationConfig,
    as_int,
    as_list,
    json_from_text,
    parse_generate_response,
)

API_KEY = "AIzaTestKey0123456789"


def _response(payload, ok=True, status_code=200, text=""):
    resp = Mock()
    resp.ok = ok
    resp.status_code = status_code
    resp.text = text
    resp.json.return_value = payload
    return resp


def _candidate(text):
    return {
        "candidates": [{"content": {"parts": [{"text": text}]}}],
        "usageMetadata": {"promptTokenCount": 12, "candidatesTokenCount": 5, "totalTokenCount": 17},
    }


class TestGeminiClient:
    """REST calls and error mapping"""

    def setup_method(self):
        self.client = GeminiClient(API_KEY, model="gemini-1.5-flash", base_url="https://example.test/v1/models/")

    @patch("gemini_gateway.gemini.requests.post")
    def test_generate_sends_prompt_and_config(self, mock_post):
        mock_post.return_value = _response(_candidate("Hello student"))

        text = self.client.generate("Say hello", GenerationConfig(temperature=0.3, max_output_tokens=200))

        assert text == "Hello student"
        args, kwargs = mock_post.call_args
        assert args[0] == "https://example.test/v1/models/gemini-1.5-flash:generateContent"
        assert kwargs["params"] == {"key": API_KEY}
        assert kwargs["json"]["contents"][0]["parts"][0]["text"] == "Say hello"
        assert kwargs["json"]["generationConfig"]["temperature"] == 0.3
        assert kwargs["json"]["generationConfig"]["maxOutputTokens"] == 200

    @patch("gemini_gateway.gemini.requests.post")
    def test_call_reports_usage(self, mock_post):
        mock_post.return_value = _response(_candidate("ok"))

        result, error = self.client.call_gemini("ping")

        assert error is None
        assert result["content"] == "ok"
        assert result["tokens"] == {"prompt": 12, "completion": 5, "total": 17}

    @patch("gemini_gateway.gemini.requests.post")
    def test_http_error_raises(self, mock_post):
        mock_post.return_value = _response({}, ok=False, status_code=403, text="API key not valid")

        with pytest.raises(GenerationError) as excinfo:
            self.client.generate("hello")
        assert "403" in excinfo.value.message
        assert "API key not valid" in excinfo.value.message
        assert excinfo.value.error_code == "API_ERROR"

    @patch("gemini_gateway.gemini.requests.post")
    def test_transport_error_raises(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(GenerationError) as excinfo:
            self.client.generate("hello")
        assert "connection refused" in excinfo.value.message

    @patch("gemini_gateway.gemini.requests.post")
    def test_error_object_raises(self, mock_post):
        mock_post.return_value = _response({"error": {"message": "quota exceeded"}})

        with pytest.raises(GenerationError) as excinfo:
            self.client.generate("hello")
        assert excinfo.value.message == "API Error: quota exceeded"

    @patch("gemini_gateway.gemini.requests.post")
    def test_unconfigured_key_never_calls_api(self, mock_post):
        client = GeminiClient("YOUR_API_KEY_HERE")

        assert client.configured is False
        with pytest.raises(GenerationError):
            client.generate("hello")
        mock_post.assert_not_called()

    @patch("gemini_gateway.gemini.requests.post")
    def test_connection_test(self, mock_post):
        mock_post.return_value = _response(_candidate("API is working correctly."))

        result = self.client.test_connection()

        assert result["success"] is True
        assert result["status"] == "connected"
        assert "responseTime" in result

    @patch("gemini_gateway.gemini.requests.post")
    def test_connection_test_failure(self, mock_post):
        mock_post.return_value = _response({}, ok=False, status_code=500, text="boom")

        result = self.client.test_connection()

        assert result["success"] is False
        assert result["message"].startswith("API connection failed")


class TestParsing:
    """Response and JSON extraction helpers"""

    def test_no_candidates(self):
        assert parse_generate_response({"candidates": []}) == (NO_RESPONSE, None)

    def test_first_candidate_wins(self):
        data = {"candidates": [
            {"content": {"parts": [{"text": "first"}, {"text": "second"}]}},
            {"content": {"parts": [{"text": "other"}]}},
        ]}
        assert parse_generate_response(data) == ("first", None)

    def test_json_from_fenced_text(self):
        assert json_from_text('```json\n{"grade": "B"}\n```') == {"grade": "B"}

    def test_json_embedded_in_prose(self):
        assert json_from_text('Here is the result: {"grade": "A", "percentage": 93} Thanks!') == {
            "grade": "A",
            "percentage": 93,
        }

    @pytest.mark.parametrize("text", [None, "", "no json here", "{broken"])
    def test_json_unparseable(self, text):
        assert json_from_text(text) is None


@pytest.mark.parametrize("key, expected", [
    ("", "not_configured"),
    (None, "not_configured"),
    ("YOUR_API_KEY_HERE", "placeholder"),
    ("short", "invalid_length"),
    ("AIzaSyABCDEFGHIJ1234", "configured (AIzaSyAB...1234)"),
])
def test_api_key_status(key, expected):
    assert GeminiClient(key).api_key_status() == expected


class TestFieldCoercion:
    """Shape-tolerant readers for parsed AI replies"""

    @pytest.mark.parametrize("value, expected", [
        (84, 84),
        ("91.6", 92),
        (float("inf"), 7),
        (float("nan"), 7),
        ("ninety", 7),
        (None, 7),
        ([80], 7),
    ])
    def test_as_int(self, value, expected):
        assert as_int(value, 7) == expected

    @pytest.mark.parametrize("value, expected", [
        (None, []),
        ("", []),
        ("Clear prose", ["Clear prose"]),
        (["a", 2], ["a", "2"]),
        (5, ["5"]),
        (True, ["True"]),
        ({"point": "x"}, ["{'point': 'x'}"]),
    ])
    def test_as_list(self, value, expected):
        assert as_list(value) == expected

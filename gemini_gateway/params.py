"""
Request parameter extraction.

Flattens the query string and a JSON, multipart or url-encoded body into a
single ``{name: value}`` map of strings. Parsing problems degrade to partial
results; only an unreadable body raises.
"""

import json
import logging
import re
from urllib.parse import unquote_plus

from .errors import MalformedRequestError

logger = logging.getLogger(__name__)

PROMPT_KEY = "userPrompt"
PROMPT_ALIASES = ("userPrompt", "message", "text")
MASKED_KEYS = ("chatHistory", "fileContent")

_FIELD_NAME_RE = re.compile(r'name="([^"]*)"')


def _decode(token):
    return unquote_plus(token, encoding="utf-8", errors="strict")


def _describe(key, value):
    if key in MASKED_KEYS:
        return f"[content data - {len(value)} chars]"
    return value


def read_request_body(reader):
    """
    Read the raw body through ``reader`` (a zero-argument callable).
    Transport failures become MalformedRequestError.
    """
    try:
        raw = reader()
    except (OSError, EOFError) as exc:
        logger.error("Error reading request body: %s", exc)
        raise MalformedRequestError(f"Request body could not be read: {exc}") from exc
    if raw is None:
        return ""
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return raw


def parse_query_string(query, params=None):
    """Decode ``a=1&b=2``; pairs without '=' or that fail to decode are skipped."""
    params = {} if params is None else params
    if not query:
        return params
    for pair in query.split("&"):
        if "=" not in pair:
            continue
        raw_key, raw_value = pair.split("=", 1)
        try:
            key = _decode(raw_key)
            value = _decode(raw_value)
        except (UnicodeDecodeError, ValueError):
            logger.warning("Error decoding URL parameter: %s=%s", raw_key, raw_value[:100])
            continue
        params[key] = value
        logger.debug("URL param: %s = %s", key, _describe(key, value))
    return params


def parse_urlencoded(body, params=None):
    """Form-encoded body; a pair that fails to decode keeps its raw text."""
    params = {} if params is None else params
    for pair in body.split("&"):
        if "=" not in pair:
            continue
        raw_key, raw_value = pair.split("=", 1)
        try:
            key = _decode(raw_key)
            value = _decode(raw_value)
        except (UnicodeDecodeError, ValueError):
            logger.warning("Error decoding parameter: %s=%s...", raw_key, raw_value[:100])
            key, value = raw_key, raw_value
        params[key] = value
        logger.debug("URL-encoded param: %s = %s", key, _describe(key, value))
    return params


def _json_string(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def parse_json_body(body, params=None):
    """
    Flatten a JSON object body. ``userPrompt``, ``message`` and ``text`` all
    feed the ``userPrompt`` key; the first one present in the document wins.
    Returns True when the body was a JSON object.
    """
    params = {} if params is None else params
    try:
        data = json.loads(body)
    except ValueError as exc:
        logger.error("Error parsing JSON data: %s (body: %s)", exc, body[:500])
        return False
    if not isinstance(data, dict):
        logger.error("JSON body is not an object: %s", type(data).__name__)
        return False

    prompt_seen = False
    for key, value in data.items():
        if value is None:
            continue
        text = _json_string(value)
        if key in PROMPT_ALIASES:
            if not prompt_seen:
                params[PROMPT_KEY] = text
                prompt_seen = True
                if key != PROMPT_KEY:
                    logger.debug("JSON param: %s (mapped to userPrompt)", key)
            if key == PROMPT_KEY:
                continue
        params[key] = text
        logger.debug("JSON param: %s = %s", key, _describe(key, text))
    return True


def _multipart_boundary(content_type):
    for part in content_type.split(";"):
        part = part.strip()
        if part.lower().startswith("boundary="):
            return part[len("boundary="):].strip().strip('"')
    return None


def parse_multipart(body, content_type, params=None):
    """
    Text-only multipart parsing: binary parts are not supported.
    Sections without a recognizable field name are skipped.
    """
    params = {} if params is None else params
    boundary = _multipart_boundary(content_type)
    if not boundary:
        logger.warning("No boundary found in multipart data")
        return params

    for section in body.split("--" + boundary):
        if not section.strip() or section.strip() == "--":
            continue

        lines = section.splitlines()
        field_name = None
        found_disposition = False
        value_start = -1
        for index, raw_line in enumerate(lines):
            line = raw_line.strip()
            if not found_disposition and line.startswith("Content-Disposition:") and "form-data" in line:
                found_disposition = True
                match = _FIELD_NAME_RE.search(line)
                if match:
                    field_name = match.group(1)
            elif found_disposition and not line:
                value_start = index + 1
                break

        if field_name is None or value_start == -1 or value_start >= len(lines):
            continue

        value = "\n".join(lines[value_start:]).strip()
        if value.endswith("--"):
            value = value[:-2].strip()
        params[field_name] = value
        logger.debug("Multipart param: %s = %s", field_name, _describe(field_name, value))
    return params


def _looks_like_json_object(body):
    text = body.strip()
    return text.startswith("{") and text.endswith("}")


def extract_params(method, content_type, query_string, body, tolerant=False):
    """
    Merge query-string and body parameters; body values win on collision.

    ``tolerant`` lets a body sent without a JSON content type still be read
    as JSON when it is wrapped in braces and parses as an object; anything
    else is read as form pairs.
    """
    params = parse_query_string(query_string)

    if (method or "").upper() != "POST":
        return params

    body = body or ""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if not body.strip():
        logger.warning("POST body is empty")
        return params

    content_type = content_type or ""
    if "multipart/form-data" in content_type:
        parse_multipart(body, content_type, params)
    elif "application/json" in content_type:
        parse_json_body(body, params)
    elif tolerant and _looks_like_json_object(body) and parse_json_body(body, params):
        logger.info("Body without a JSON content type parsed as JSON")
    else:
        params.update(parse_urlencoded(body, {}))

    logger.debug("Final parsed parameters: %s", sorted(params))
    return params

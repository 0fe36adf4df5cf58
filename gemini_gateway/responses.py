"""Response bodies returned by the gateway."""

import time
from dataclasses import dataclass

from .config import DEFAULT_MODEL

SERVER_NAME = "gateway"


def now_millis():
    return int(time.time() * 1000)


@dataclass
class ChatResponse:
    response: str
    session_id: str = None
    saved_to_database: bool = False
    database_enhanced: bool = False
    detected_content_type: str = "GENERAL"
    detected_query_type: str = "GENERAL"
    search_terms: str = None
    model: str = DEFAULT_MODEL
    timestamp: int = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = now_millis()

    def to_dict(self):
        """Every field is always present; absent values use their documented defaults."""
        return {
            "status": "success",
            "response": self.response,
            "sessionId": self.session_id if self.session_id else "null",
            "timestamp": self.timestamp,
            "model": self.model,
            "server": SERVER_NAME,
            "savedToDatabase": bool(self.saved_to_database),
            "databaseEnhanced": bool(self.database_enhanced),
            "detectedContentType": str(getattr(self.detected_content_type, "value", self.detected_content_type)),
            "detectedQueryType": str(getattr(self.detected_query_type, "value", self.detected_query_type)),
            "searchTerms": self.search_terms or "",
        }


def error_payload(message, error_code):
    return {
        "status": "error",
        "message": message,
        "errorCode": error_code,
        "timestamp": now_millis(),
    }

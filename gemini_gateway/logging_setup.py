import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level="INFO"):
    """Attach a single stream handler to the package logger."""
    logger = logging.getLogger("gemini_gateway")
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not any(getattr(h, "_gateway_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._gateway_handler = True
        logger.addHandler(handler)
    return logger


def preview(text, limit=100):
    """Shorten long prompt/response text for log lines."""
    if text is None:
        return ""
    text = str(text)
    return text if len(text) <= limit else text[:limit] + "..."

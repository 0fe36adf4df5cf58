"""Error taxonomy shared by the pipeline and the HTTP layer."""


class GatewayError(Exception):
    """Base error carrying a machine-readable code and an HTTP status."""

    error_code = "GATEWAY_ERROR"
    status_code = 500

    def __init__(self, message, error_code=None, status_code=None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code


class MalformedRequestError(GatewayError):
    """The request body could not be read from the transport."""

    error_code = "MALFORMED_REQUEST"
    status_code = 400


class MissingParameterError(GatewayError):
    error_code = "MISSING_PARAMETERS"
    status_code = 400


class ConfigurationError(GatewayError):
    error_code = "NO_API_KEY"
    status_code = 400


class NotFoundError(GatewayError):
    error_code = "NOT_FOUND"
    status_code = 404


class ClassificationError(GatewayError):
    error_code = "CLASSIFICATION_ERROR"
    status_code = 500


class RetrievalError(GatewayError):
    """A data-store call failed."""

    error_code = "DATABASE_ERROR"
    status_code = 500


class GenerationError(GatewayError):
    """The Gemini API call failed or returned a non-success status."""

    error_code = "API_ERROR"
    status_code = 502

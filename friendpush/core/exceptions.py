from fastapi import Request
from fastapi.responses import JSONResponse


class FanoutError(Exception):
    """Base exception for errors that end a request with a non-2xx response."""

    def __init__(self, code: str, message: str, status: int = 500):
        self.code = code
        self.message = message
        self.status = status
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message}


class InvalidPayloadError(FanoutError):
    def __init__(self, message: str = "Invalid payload"):
        super().__init__(code="invalid_payload", message=message, status=400)


class ConfigurationMissingError(FanoutError):
    def __init__(self, message: str = "Missing storage configuration"):
        super().__init__(code="configuration_missing", message=message, status=500)


class SigningError(Exception):
    """Raised when an APNs provider token cannot be produced.

    Never rendered as an HTTP response: the push client folds it into the
    outcome of the single delivery that needed the token.
    """


async def fanout_error_handler(request: Request, exc: FanoutError) -> JSONResponse:
    """Global exception handler for FanoutError and subclasses."""
    return JSONResponse(status_code=exc.status, content=exc.to_dict())

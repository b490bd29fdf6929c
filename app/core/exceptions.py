"""
Domain exceptions raised by the service layer.

Each class carries the API error code (``app.utils.errors.E``) it is
reported under; a single handler in app/__init__.py turns any
``ReqBridgeError`` into ``{"error", "code", "details"?}`` with the code's
status, so blueprints never catch these themselves.

    raise NotFoundError("Project", 42)
    raise ValidationError("Title is required", details={"title": "required"})
"""

from app.utils.errors import E


class ReqBridgeError(Exception):
    code = E.INTERNAL

    def __init__(self, message: str, details: dict | str | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(ReqBridgeError):
    """Bad input. ``details`` maps field names to what is wrong with them."""

    code = E.VALIDATION


class NotFoundError(ReqBridgeError):
    """
    The client sees ``"<resource> not found"`` unless ``message`` is given;
    the id only goes to the logs via ``str(exc)``.
    """

    code = E.NOT_FOUND

    def __init__(self, resource: str, resource_id: int | str | None = None,
                 message: str | None = None) -> None:
        super().__init__(message or f"{resource} not found")
        self.resource = resource
        self.resource_id = resource_id

    def __str__(self) -> str:
        if self.resource_id is None:
            return self.message
        return f"{self.resource} id={self.resource_id} not found"


class ConflictError(ReqBridgeError):
    """Deleting or changing something that other rows still depend on."""

    code = E.CONFLICT


class PermissionDeniedError(ReqBridgeError):
    code = E.FORBIDDEN

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message)


class AIServiceError(ReqBridgeError):
    """An LLM or HuggingFace call produced no usable result.

    ``detail`` is the provider-side reason and is returned to the client.
    """

    code = E.AI_PROVIDER

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message, details=detail)

    def __str__(self) -> str:
        return f"{self.message}: {self.details}" if self.details else self.message


class ProviderNotConfiguredError(AIServiceError):
    def __init__(self, provider: str) -> None:
        super().__init__("Missing API key", detail=f"{provider} API key is not configured")
        self.provider = provider

"""Domain-level exceptions for the chat server.

Each error carries the HTTP status the API layer answers with.
"""
from __future__ import annotations
from typing import Optional


class ChatError(Exception):
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(ChatError):
    """No active provider, or no model selected."""

    status_code = 400


class UnknownProviderError(ChatError):
    status_code = 404

    def __init__(self, name: str) -> None:
        super().__init__(f"Provider {name} not registered")
        self.name = name


class ModelNotFoundError(ChatError):
    status_code = 404

    def __init__(self, model_id: str) -> None:
        super().__init__(f"Model with ID '{model_id}' not found")
        self.model_id = model_id


class ValidationError(ChatError):
    status_code = 422


class UnsupportedCapabilityError(ChatError):
    status_code = 400


class ProviderRequestError(ChatError):
    """A vendor call failed. `provider_status` is the vendor's HTTP status, if any."""

    status_code = 502

    def __init__(self, message: str, provider_status: Optional[int] = None) -> None:
        super().__init__(message)
        self.provider_status = provider_status


class RequestCancelledError(ChatError):
    status_code = 499


class RequestInProgressError(ChatError):
    status_code = 409


class RecordNotFoundError(ChatError):
    status_code = 404


class RecordExistsError(ChatError):
    status_code = 409

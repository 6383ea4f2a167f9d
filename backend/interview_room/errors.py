from __future__ import annotations


class ApiError(Exception):
    """Non-2xx response from the backend REST API."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = int(status_code)
        self.detail = str(detail or "")


class ProviderConnectionError(Exception):
    """The voice provider session could not be opened."""


class InvalidTransition(Exception):
    def __init__(self, operation: str, status: str):
        super().__init__(f"{operation} not allowed while {status}")
        self.operation = operation
        self.status = status

from __future__ import annotations


class GatewayError(RuntimeError):
    status_code: int | None = None


class AuthorizationRejectedError(GatewayError):
    def __init__(self, message: str = "Unauthorized request.") -> None:
        super().__init__(message)
        self.status_code = 401


class RetryExhaustedError(AuthorizationRejectedError):
    """A renewed credential was rejected again; the request is not retried twice."""

    def __init__(self, message: str = "Request was rejected after credential renewal.") -> None:
        super().__init__(message)


class RenewalFailedError(GatewayError):
    """The session cannot be renewed and the user must log in again."""

    def __init__(self, message: str = "Session expired. Please login again.") -> None:
        super().__init__(message)
        self.status_code = 401


class ApiClientError(GatewayError):
    def __init__(self, status_code: int, message: str, errors: object | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.errors = errors


class PermissionDeniedError(ApiClientError):
    def __init__(
        self,
        message: str = "You do not have permission to perform this action.",
        errors: object | None = None,
    ) -> None:
        super().__init__(403, message, errors)

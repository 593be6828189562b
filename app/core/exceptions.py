from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ServiceError):
    """Missing or invalid input (e.g. non-positive payment amount)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class AuthorizationError(ServiceError):
    """Caller identity is incomplete, e.g. an owner token without a hostel binding."""

    def __init__(self, message: str = "Your account is not linked to any hostel.") -> None:
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class ForbiddenError(ServiceError):
    """Cross-hostel access or an action reserved for admins."""

    def __init__(self, message: str = "You do not have access to this hostel.") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class NotFoundError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ConflictError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class PersistenceError(ServiceError):
    """Transaction or lock failure that survived the retry."""

    def __init__(self, message: str = "Database operation failed") -> None:
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)

"""
Пользовательские исключения для централизованной обработки ошибок
"""

from typing import Optional, Dict, Any


class BaseAppException(Exception):
    """Базовое исключение приложения"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


# === Ошибки валидации ===
class ValidationError(BaseAppException):
    """Ошибка валидации данных"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 400, "VALIDATION_ERROR", details)


# === Ошибки ресурсов ===
class NotFoundError(BaseAppException):
    """Ресурс не найден"""

    def __init__(self, resource: str, identifier: str = None):
        if identifier:
            message = f"{resource} with identifier '{identifier}' not found"
            details = {"resource": resource, "identifier": identifier}
        else:
            message = f"{resource} not found"
            details = {"resource": resource}
        super().__init__(message, 404, "NOT_FOUND", details)


# === Бизнес-логика ===
class BusinessLogicError(BaseAppException):
    """Ошибка бизнес-логики"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 400, "BUSINESS_LOGIC_ERROR", details)


class BookingRejectedError(BusinessLogicError):
    """A booking request refused by a business rule. Never retried."""

    def __init__(
        self,
        message: str,
        status_code: int,
        error_code: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.error_code = error_code


class AlreadyBookedError(BookingRejectedError):
    def __init__(self, class_id: int, member_id: int):
        super().__init__(
            "Member already has an active booking for this class",
            409,
            "ALREADY_BOOKED",
            {"class_id": class_id, "member_id": member_id},
        )


class ClassCancelledError(BookingRejectedError):
    def __init__(self, class_id: int):
        super().__init__(
            "This class has been cancelled",
            409,
            "CLASS_CANCELLED",
            {"class_id": class_id},
        )


class NoActiveSubscriptionError(BookingRejectedError):
    def __init__(self, member_id: int):
        super().__init__(
            "No active subscription with remaining sessions",
            402,
            "NO_ACTIVE_SUBSCRIPTION",
            {"member_id": member_id},
        )


class BookingConflictError(BaseAppException):
    """Concurrent booking transaction lost a race; safe to retry"""

    def __init__(self, class_id: int, reason: str = None):
        message = f"Concurrent booking conflict on class {class_id}"
        if reason:
            message += f" - {reason}"
        super().__init__(message, 409, "BOOKING_CONFLICT", {"class_id": class_id})


# === Ошибки базы данных ===
class DatabaseError(BaseAppException):
    """Ошибка базы данных"""

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 500, "DATABASE_ERROR", details)


class DatabaseConnectionError(BaseAppException):
    """Ошибка подключения к базе данных"""

    def __init__(self, message: str = "Database connection failed"):
        super().__init__(message, 503, "DATABASE_CONNECTION_ERROR")


class DatabaseTimeoutError(BaseAppException):
    """Таймаут операции с базой данных"""

    def __init__(self, operation: str, timeout: int):
        message = f"Database operation '{operation}' timed out after {timeout}s"
        details = {"operation": operation, "timeout": timeout}
        super().__init__(message, 504, "DATABASE_TIMEOUT", details)


class DatabaseIntegrityError(BaseAppException):
    """Ошибка целостности данных"""

    def __init__(self, constraint: str, details: Optional[Dict[str, Any]] = None):
        message = f"Database integrity constraint violated: {constraint}"
        error_details = {"constraint": constraint}
        if details:
            error_details.update(details)
        super().__init__(message, 409, "DATABASE_INTEGRITY_ERROR", error_details)

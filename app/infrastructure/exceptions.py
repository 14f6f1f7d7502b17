"""
Custom exception classes for the digital maturity assessment application.

Provides structured error handling with user-friendly messages and proper
error categorization for different failure scenarios.
"""

from __future__ import annotations

from typing import Any


class DigiAssistantError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.user_message = user_message or self._get_default_user_message()

    def _get_default_user_message(self) -> str:
        """Provide a user-friendly version of the error message."""
        return "An unexpected error occurred. Please try again."

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


class ValidationError(DigiAssistantError):
    """Raised when input validation fails."""

    def __init__(
        self, field: str, message: str, value: Any = None, details: dict[str, Any] | None = None
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=f"Validation failed for field '{field}': {message}",
            details=details or {"field": field, "value": value},
            user_message=f"Invalid {field.replace('_', ' ')}: {message}",
        )

    def _get_default_user_message(self) -> str:
        return f"Please check your input for {self.field.replace('_', ' ')} and try again."


class MultipleValidationError(DigiAssistantError):
    """Raised when multiple validation errors occur."""

    def __init__(self, errors: list[ValidationError]):
        self.validation_errors = errors
        messages = [f"{e.field}: {e.message}" for e in errors]
        super().__init__(
            message=f"Multiple validation errors: {'; '.join(messages)}",
            details={
                "errors": [
                    {"field": e.field, "message": e.message, "value": e.value} for e in errors
                ]
            },
            user_message="Please correct the following errors and try again.",
        )

    def _get_default_user_message(self) -> str:
        return f"Please correct {len(self.validation_errors)} validation errors and try again."


class NotFoundError(DigiAssistantError):
    """Raised when a question, assessment, dimension or profile cannot be found."""

    def __init__(
        self,
        message: str,
        resource: str,
        identifier: Any = None,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            message=message,
            details=details or {"resource": resource, "identifier": identifier},
            user_message=user_message,
        )

    def _get_default_user_message(self) -> str:
        return f"The requested {self.resource} could not be found."


class QuestionNotFoundError(NotFoundError):
    """Raised when a question id is not part of the question bank."""

    def __init__(self, question_id: str | None):
        self.question_id = question_id
        super().__init__(
            message=f"Question with ID {question_id} not found",
            resource="question",
            identifier=question_id,
        )

    def _get_default_user_message(self) -> str:
        return "Question not found. Please refresh and try again."


class AssessmentNotFoundError(NotFoundError):
    """Raised when an assessment record does not exist."""

    def __init__(self, assessment_id: str):
        self.assessment_id = assessment_id
        super().__init__(
            message=f"Assessment with ID {assessment_id} not found",
            resource="assessment",
            identifier=assessment_id,
        )

    def _get_default_user_message(self) -> str:
        return "The assessment could not be found. Please start a new assessment."


class DimensionNotFoundError(NotFoundError):
    """Raised when a dimension id is not part of the dimension catalog."""

    def __init__(self, dimension_id: str):
        self.dimension_id = dimension_id
        super().__init__(
            message=f"Dimension with ID {dimension_id} not found",
            resource="dimension",
            identifier=dimension_id,
        )


class ProfileNotFoundError(NotFoundError):
    """Raised when no maturity profile covers a global score."""

    def __init__(self, score: int):
        self.score = score
        super().__init__(
            message=f"No maturity profile covers global score {score}",
            resource="maturity profile",
            identifier=score,
        )

    def _get_default_user_message(self) -> str:
        return "Unable to determine the maturity profile. Please contact support."


class InvalidAnswerError(DigiAssistantError):
    """Raised when an answer id is not among a question's options."""

    def __init__(self, question_id: str, answer_id: str):
        self.question_id = question_id
        self.answer_id = answer_id
        super().__init__(
            message=f"Invalid answer option {answer_id!r} for question {question_id!r}",
            details={"question_id": question_id, "answer_id": answer_id},
        )

    def _get_default_user_message(self) -> str:
        return "Invalid answer option. Please choose one of the proposed answers."


class ConfigurationError(DigiAssistantError):
    """Raised when configuration or static catalogs are invalid."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            details=details or {"config_key": config_key},
            user_message="Configuration error. Please check your settings.",
        )


class BusinessLogicError(DigiAssistantError):
    """Raised when business logic constraints are violated."""

    def __init__(
        self,
        message: str,
        rule: str | None = None,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        self.rule = rule
        super().__init__(
            message=message,
            details=details or {"rule": rule},
            user_message=user_message
            or "This operation cannot be completed due to business rules.",
        )


class AssessmentStateError(BusinessLogicError):
    """Raised when an operation is not allowed in the assessment's current status."""

    def __init__(self, assessment_id: str | None, status: str, operation: str):
        self.assessment_id = assessment_id
        self.status = status
        self.operation = operation
        super().__init__(
            message=f"Cannot {operation} assessment {assessment_id} with status '{status}'",
            rule="assessment_status",
            details={"assessment_id": assessment_id, "status": status, "operation": operation},
            user_message=self._message_for(status),
        )

    @staticmethod
    def _message_for(status: str) -> str:
        if status == "completed":
            return "This assessment is already completed."
        if status == "abandoned":
            return "This assessment has been abandoned. Please start a new one."
        return "This assessment is not completed yet."


class DatabaseError(DigiAssistantError):
    """Raised when database operations fail."""

    def __init__(self, message: str, operation: str, details: dict[str, Any] | None = None):
        self.operation = operation
        super().__init__(
            message=f"Database error during {operation}: {message}",
            details=details or {"operation": operation},
            user_message="A database error occurred. Please try again in a moment.",
        )

    def _get_default_user_message(self) -> str:
        return "Unable to save your changes. Please try again."


class ConnectionError(DatabaseError):
    """Raised when database connection fails."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, operation="connection", details=details)


class IntegrityError(DatabaseError):
    """Raised when database integrity constraints are violated."""

    def __init__(
        self,
        message: str,
        constraint: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.constraint = constraint
        super().__init__(
            message=message,
            operation="integrity_check",
            details=details or {"constraint": constraint},
        )
        self.user_message = self._constraint_message()

    def _constraint_message(self) -> str:
        if self.constraint and "unique" in self.constraint.lower():
            return "This assessment already exists. Data integrity constraint violated."
        return "Data integrity constraint violated. Please check your input and try again."


class ExportError(DigiAssistantError):
    """Raised when result export fails."""

    def __init__(
        self,
        message: str,
        export_format: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.export_format = export_format
        super().__init__(
            message=message,
            details=details or {"export_format": export_format},
            user_message="Export failed. Please try again or choose a different format.",
        )


class RateLimitExceededError(DigiAssistantError):
    """Raised when a client exceeds its request budget."""

    def __init__(self, client_key: str, limit: int, window_seconds: int, retry_after: float):
        self.client_key = client_key
        self.limit = limit
        self.window_seconds = window_seconds
        self.retry_after = retry_after
        super().__init__(
            message=f"Rate limit of {limit} requests per {window_seconds}s exceeded by {client_key}",
            details={"limit": limit, "window_seconds": window_seconds},
            user_message="Too many requests. Please wait a moment and try again.",
        )


def handle_database_error(e: Exception, operation: str = "database operation") -> DatabaseError:
    """
    Convert generic database exceptions to appropriate custom exceptions.

    Args:
        e: The original exception
        operation: Description of the operation that failed

    Returns:
        Appropriate DatabaseError subclass

    Example:
        >>> try:
        ...     session.commit()
        >>> except Exception as e:
        ...     raise handle_database_error(e, "commit transaction")
    """
    error_msg = str(e).lower()

    if "connection" in error_msg or "timeout" in error_msg:
        return ConnectionError(str(e))
    elif "unique constraint" in error_msg or "duplicate" in error_msg:
        return IntegrityError(str(e), constraint="unique")
    elif "foreign key" in error_msg or "foreign_key" in error_msg:
        return IntegrityError(str(e), constraint="foreign_key")
    elif "check constraint" in error_msg:
        return IntegrityError(str(e), constraint="check")
    else:
        return DatabaseError(str(e), operation)


def create_user_friendly_error_message(error: Exception) -> str:
    """
    Create a user-friendly error message from any exception.

    Args:
        error: The exception to convert

    Returns:
        User-friendly error message

    Example:
        >>> error = ValidationError("answer_id", "cannot be empty")
        >>> message = create_user_friendly_error_message(error)
        >>> print(message)  # "Invalid answer id: cannot be empty"
    """
    if isinstance(error, DigiAssistantError):
        return error.user_message

    error_type = type(error).__name__
    messages = {
        "ValueError": "Invalid input provided. Please check your data and try again.",
        "KeyError": "Required information is missing. Please check your input.",
        "TypeError": "Incorrect data type provided. Please check your input format.",
    }
    return messages.get(
        error_type, "An unexpected error occurred. Please try again or contact support."
    )


def log_error_details(error: Exception, context: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Create structured error details for logging.

    Args:
        error: The exception to log
        context: Additional context information

    Returns:
        Dictionary with structured error details

    Example:
        >>> error = AssessmentNotFoundError("assess_1")
        >>> details = log_error_details(error, {"operation": "submit_answer"})
        >>> print(details["error_type"])  # "AssessmentNotFoundError"
    """
    details = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
    }

    if isinstance(error, DigiAssistantError):
        details.update({"user_message": error.user_message, "error_details": error.details})

    return details

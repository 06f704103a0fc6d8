class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulerError(AppError):
    """Raised when the scheduler encounters a logical error or invalid state."""
    def __init__(self, message: str, details: dict = None, status_code: int = 400):
        super().__init__(message, status_code=status_code, details=details)

class ValidationError(SchedulerError):
    """Malformed slot, day, period or date, or a request naming an unusable record.

    Raised before any lock is taken wherever the input can be checked up front.
    """
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, details=details, status_code=422)

class ConflictError(SchedulerError):
    """A teacher would be double-booked or placed outside their availability.

    Carries the full conflict list. Services raise it inside the locked section to
    abort the transaction and report it back as a structured result.
    """
    def __init__(self, conflicts: list, message: str = "Scheduling conflicts detected"):
        self.conflicts = list(conflicts)
        super().__init__(
            message,
            details={"conflicts": [item.model_dump(mode="json") for item in self.conflicts]},
            status_code=409,
        )

class InfeasibleGenerationError(SchedulerError):
    """Raised only in strict generation mode when requirements cannot all be placed."""
    def __init__(self, unsatisfied: list):
        self.unsatisfied = list(unsatisfied)
        super().__init__(
            "Timetable generation could not satisfy every subject requirement",
            details={"unsatisfiedRequirements": [item.model_dump(mode="json") for item in self.unsatisfied]},
            status_code=422,
        )

class ConcurrencyTimeoutError(AppError):
    """Raised when a scheduling lock is not acquired within the configured bound."""
    def __init__(self, lock_key: str, timeout_seconds: float, message: str | None = None):
        super().__init__(
            message or f"Timed out after {timeout_seconds:g}s waiting for {lock_key}; retry the request",
            status_code=503,
            details={"lock": lock_key, "retryable": True},
        )

class NotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class GenerationValidationError(AppError):
    """Raised when a generation request or its config is malformed or out of range."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)

class ConcurrencyError(AppError):
    """Raised when a generation run is already active for the requested period."""
    def __init__(self, period_id: int):
        super().__init__(
            f"A generation run is already in progress for period {period_id}",
            status_code=409,
            details={"periodo_id": period_id},
        )
        self.period_id = period_id

class SnapshotError(AppError):
    """Raised when the academic data for a period violates structural rules."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class AvailabilityOverlapError(AppError):
    """Raised when new availability ranges overlap existing ones and merging is not allowed."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

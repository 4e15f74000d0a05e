from typing import Optional


class BillingError(Exception):
    """Base exception for the billing service."""
    pass

class EmptySelectionError(BillingError):
    """Raised when a bill is submitted without any selected product."""

    def __init__(self, message: str = "Please select at least one product."):
        super().__init__(message)

class SubmissionInProgressError(BillingError):
    """Raised when a bill is submitted while the previous request is outstanding."""
    pass

class BillSubmissionError(BillingError):
    """Raised when creating or updating a bill fails."""
    pass

class ApiError(BillingError):
    """Raised when the backend answers with a non-2xx status or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

class NotFoundError(ApiError):
    """Raised when the backend answers 404."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, status_code=404)

class DatabaseConnectionError(BillingError):
    """Raised when the database is needed but not configured."""
    pass

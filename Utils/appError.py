class AppError(Exception):
    def __init__(self, message: str, status_code: int, errors: list | None = None):
        """
        Custom exception class for application errors.

        Args:
            message (str): The error message.
            status_code (int): The HTTP status code associated with the error.
            errors (list): Optional field-level details ({"field", "message"}).
        """
        super().__init__(message)

        self.status_code = status_code
        self.status = "fail" if str(status_code).startswith("4") else "error"
        self.is_operational = True
        self.errors = errors or []

    def to_json(self) -> dict:
        payload = {"status": self.status, "message": str(self)}
        if self.errors:
            payload["errors"] = self.errors
        return payload


class ValidationError(AppError):
    """Malformed or missing input."""

    def __init__(self, message: str = "Validation failed", errors: list | None = None):
        super().__init__(message, 400, errors)


class Forbidden(AppError):
    def __init__(self, message: str = "Access denied"):
        super().__init__(message, 403)


class NotFound(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, 404)


class InvalidState(AppError):
    """Operation is not valid for the entity's current status."""

    def __init__(self, message: str):
        super().__init__(message, 400)


class AmountMismatch(AppError):
    def __init__(self, message: str = "Payment amount does not match order total"):
        super().__init__(message, 400)


class StorageError(AppError):
    """PDF render/write failure. Never undoes already persisted state."""

    def __init__(self, message: str = "Receipt storage failed"):
        super().__init__(message, 500)

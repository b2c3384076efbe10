"""Custom exception classes for the application."""


class BaseAppException(Exception):
    """Base exception class for all application exceptions."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(BaseAppException):
    """Raised when product or movement input is invalid."""
    pass


class ProductNotFoundError(BaseAppException):
    """Raised when an operation references a product id that does not exist."""
    pass


class AlertNotFoundError(BaseAppException):
    """Raised when an alert id cannot be found."""
    pass


class PersistenceError(BaseAppException):
    """Raised when the key-value backend fails to read or write."""
    pass


class ImportValidationError(ValidationError):
    """Raised when an import document does not have the expected structure."""
    pass


class ConfigurationError(BaseAppException):
    """Raised when there's a configuration error."""
    pass

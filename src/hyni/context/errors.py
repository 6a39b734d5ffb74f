class HyniError(RuntimeError):
    pass


class SchemaError(HyniError):
    """Raised when a provider schema document is malformed or incomplete."""


class ValidationError(HyniError):
    """Raised when a caller operation violates a constraint declared by the schema."""


class PathError(HyniError):
    """Raised when a path step cannot be resolved against a value."""


class ExtractionError(HyniError):
    """Raised when a response does not have the shape the schema promised.

    The raw response is kept on ``response`` so callers can surface it for debugging.
    """

    def __init__(self, message: str, *, response=None):
        super().__init__(message)
        self.response = response

"""Engine layer exceptions."""


class InvalidParameterError(ValueError):
    """Raised when a sizing or exit-rule parameter is outside its valid domain.

    Callers recover locally by falling back to a conservative default
    instead of propagating the error.
    """

class ShapeError(ValueError):
    """
    Raised when a raw model output does not match the expected channel layout.

    Always fails the whole decode call; no partial result is produced.
    """

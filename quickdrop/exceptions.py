"""Custom exception classes for QuickDrop."""


class QuickDropError(Exception):
    """
    Base exception class for all QuickDrop errors.

    ``status_code`` is the HTTP status the API answers with and ``message``
    is the text placed in the ``{"error": ...}`` payload.
    """
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(QuickDropError):
    """
    Raised when an upload request is missing fields, is malformed,
    or exceeds the size limits.
    """
    status_code = 400


class NotFoundError(QuickDropError):
    """
    Raised when a handle never existed, has expired, or was already consumed.
    """
    status_code = 404

    def __init__(self, message: str = "File not found or link expired"):
        super().__init__(message)


class RetrievalError(QuickDropError):
    """
    Raised when stored chunks cannot be reassembled into the original payload.
    """
    pass


class MissingChunkError(RetrievalError):
    """
    Raised when a chunk expected by the metadata record is absent.
    """

    def __init__(self, index: int):
        super().__init__(f"Missing chunk {index}")
        self.index = index


class CleanupError(QuickDropError):
    """
    Raised when post-download housekeeping fails. Logged, never returned.
    """
    pass


class StoreError(QuickDropError):
    """
    Raised when the blob store cannot complete a write.
    """
    pass

from .file import FileRecord
from .settings import AppSettings
from .transfer import UploadRequest, UploadResponse

__all__ = [
    # File
    "FileRecord",
    # Settings
    "AppSettings",
    # Transfer
    "UploadRequest",
    "UploadResponse",
]

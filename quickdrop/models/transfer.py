from pydantic import BaseModel, Field


class UploadRequest(BaseModel):
    """Request model for uploading a file."""
    file: str = Field(..., min_length=1, description="Data URL or raw base64 file content")
    fileName: str = Field(..., min_length=1, description="Original filename")


class UploadResponse(BaseModel):
    """Response model after uploading a file."""
    code: str = Field(..., description="File handle to share with the receiver")
    downloadUrl: str = Field(..., description="Direct download URL")
    size: str = Field(..., description="Human-readable decoded file size")
    expiresIn: int = Field(..., description="Seconds until the file expires")

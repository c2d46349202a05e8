from pathlib import Path

from pydantic import BaseModel, Field, model_validator


class AppSettings(BaseModel):
    """Application settings model."""
    data_dir: Path = Path("/quickdrop/data")
    max_chunk_size: int = Field(750 * 1024, gt=0)
    max_total_size: int = Field(100 * 1024 * 1024, gt=0)
    max_value_size: int = Field(1024 * 1024, gt=0)
    expiry_time: int = Field(120, gt=0)
    cleanup_interval: int = Field(300, gt=0)
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _chunk_fits_value(self):
        if self.max_chunk_size >= self.max_value_size:
            raise ValueError("max_chunk_size must be smaller than max_value_size")
        return self

    @property
    def database_path(self) -> Path:
        return self.data_dir / "quickdrop.db"

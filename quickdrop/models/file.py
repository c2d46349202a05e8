from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FileRecord(BaseModel):
    """Metadata record stored at ``<handle>:meta``.

    Serialised with camelCase keys; timestamps are epoch milliseconds.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    handle: str = Field(..., description="Public file handle")
    file_name: str = Field(..., description="Original filename")
    chunk_count: int = Field(..., ge=0, description="Number of stored chunks")
    total_size: int = Field(..., description="Decoded size in bytes")
    payload_length: int | None = Field(None, ge=0, description="Exact length of the stored payload in characters")
    created_at: int = Field(..., description="Creation time (epoch ms)")
    expires_at: int = Field(..., description="Expiration time (epoch ms)")
    downloaded: bool = Field(False, description="Whether the file has been downloaded")

    def dump(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def load(cls, raw: str) -> "FileRecord":
        return cls.model_validate_json(raw)

"""Media response models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MediaResponse(BaseModel):
    """Stored media file."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    file_name: str = Field(description="Original file name")
    file_path: str = Field(description="Path relative to the media root")
    url: str = Field(description="URL the file is served from")
    file_hash: str
    mime_type: str
    size: int
    created_at: datetime

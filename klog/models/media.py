"""Media database model using SQLModel."""

from datetime import datetime
from typing import cast

from sqlalchemy import BigInteger, DateTime
from sqlalchemy.orm import declared_attr
from sqlmodel import Column, Field, SQLModel, String

from klog.models.post import utc_now


class MediaDB(SQLModel, table=True):
    """
    Uploaded media file.

    ``file_path`` is relative to the media root with posix separators. The
    orphan sweep treats the set of these paths as the live files.
    """

    __tablename__ = cast("declared_attr[str]", "media")

    id: int | None = Field(default=None, primary_key=True, description="Media ID")
    file_name: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Original file name",
    )
    file_path: str = Field(
        sa_column=Column(String(500), unique=True, nullable=False),
        description="Path relative to the media root",
    )
    file_hash: str = Field(
        sa_column=Column(String(32), nullable=False, index=True),
        description="MD5 hash of the file content",
    )
    mime_type: str = Field(sa_column=Column(String(100), nullable=False), description="MIME type")
    size: int = Field(sa_column=Column(BigInteger, nullable=False), description="Size in bytes")
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
        description="Upload timestamp",
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
        description="Last update timestamp",
    )

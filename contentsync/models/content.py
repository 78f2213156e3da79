"""Destination tables holding synced content, one per content category."""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from contentsync.models.base import Base

JsonContent = JSON().with_variant(JSONB(), "postgresql")


class ContentRowMixin:
    """Columns shared by every destination table."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(String(512), nullable=False)
    file_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    synced_at: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[str | None] = mapped_column(
        Text, nullable=True, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[str | None] = mapped_column(Text, nullable=True)


class CollectionFile(ContentRowMixin, Base):
    """Multi-language JSON document, keyed by (lang, type, filename)."""

    __tablename__ = "collections"
    __table_args__ = (
        UniqueConstraint("lang", "type", "filename", name="uq_collections_lang_type_filename"),
        Index("idx_collections_lang", "lang"),
    )

    lang: Mapped[str] = mapped_column(String(10), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    file_content: Mapped[Any] = mapped_column(JsonContent, nullable=True)


class ConfigFile(ContentRowMixin, Base):
    __tablename__ = "config_files"
    __table_args__ = (UniqueConstraint("filename", name="uq_config_files_filename"),)

    file_type: Mapped[str] = mapped_column(String(50), nullable=False)
    file_content: Mapped[Any] = mapped_column(JsonContent, nullable=True)


class DataFile(ContentRowMixin, Base):
    __tablename__ = "data_files"
    __table_args__ = (UniqueConstraint("filename", name="uq_data_files_filename"),)

    file_type: Mapped[str] = mapped_column(String(50), nullable=False)
    file_content: Mapped[Any] = mapped_column(JsonContent, nullable=True)


class StaticFile(ContentRowMixin, Base):
    """Text or binary file; binary content is stored base64-encoded."""

    __tablename__ = "static_files"
    __table_args__ = (UniqueConstraint("filename", name="uq_static_files_filename"),)

    file_type: Mapped[str] = mapped_column(String(50), nullable=False)
    file_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_encoding: Mapped[str] = mapped_column(String(16), nullable=False, default="utf-8")


class ImageFile(ContentRowMixin, Base):
    """Image metadata. Image bytes stay in the file tree and are tracked by hash."""

    __tablename__ = "images"
    __table_args__ = (UniqueConstraint("filename", name="uq_images_filename"),)

    mime_type: Mapped[str | None] = mapped_column(String(50), nullable=True)


class JavascriptFile(ContentRowMixin, Base):
    __tablename__ = "javascript_files"
    __table_args__ = (UniqueConstraint("filename", name="uq_javascript_files_filename"),)

    file_content: Mapped[str | None] = mapped_column(Text, nullable=True)


class ResumeFile(ContentRowMixin, Base):
    """Resume document metadata, tracked by hash."""

    __tablename__ = "resumes"
    __table_args__ = (UniqueConstraint("filename", name="uq_resumes_filename"),)

    file_type: Mapped[str] = mapped_column(String(50), nullable=False)

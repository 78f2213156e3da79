"""Sync manifest model."""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from contentsync.models.base import Base


class SyncManifest(Base):
    """Sync manifest entry tracking the last state pushed for a content path."""

    __tablename__ = "sync_manifest"

    file_path: Mapped[str] = mapped_column(String(512), primary_key=True)
    file_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    table_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_synced: Mapped[str] = mapped_column(Text, nullable=False)

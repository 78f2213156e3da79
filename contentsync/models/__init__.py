"""SQLAlchemy ORM models for ContentSync."""

from contentsync.models.base import Base
from contentsync.models.content import (
    CollectionFile,
    ConfigFile,
    DataFile,
    ImageFile,
    JavascriptFile,
    ResumeFile,
    StaticFile,
)
from contentsync.models.sync import SyncManifest

__all__ = [
    "Base",
    "CollectionFile",
    "ConfigFile",
    "DataFile",
    "ImageFile",
    "JavascriptFile",
    "ResumeFile",
    "StaticFile",
    "SyncManifest",
]

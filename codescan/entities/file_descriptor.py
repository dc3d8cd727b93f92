"""Discovered source file metadata."""

from pydantic import BaseModel, ConfigDict


class FileDescriptor(BaseModel):
    """Identifies one eligible file in a repository tree. Immutable once discovered."""

    model_config = ConfigDict(frozen=True)

    path: str
    name: str
    size_bytes: int
    content_hash: str
    language: str
    download_ref: str

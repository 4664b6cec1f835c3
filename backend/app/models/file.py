import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, true
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.utils.timeutils import utcnow


class File(Base):
    """Metadata for an uploaded blob.

    ``bucket`` and ``object_name`` together are the opaque storage handle.
    Files are never hard-deleted: ``is_active`` is the soft-delete flag and
    ``display_name`` only has to be unique among the owner's active files.
    """

    __tablename__ = "files"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    display_name = Column(String(255), nullable=False, index=True)
    original_filename = Column(String, nullable=False)
    media_type = Column(String, nullable=False, default="application/octet-stream")
    size_bytes = Column(Integer, nullable=False, default=0)
    description = Column(String(500), nullable=True)
    bucket = Column(String, nullable=False)
    object_name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    download_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    owner = relationship("User")
    links = relationship("Link", back_populates="file")

    def __repr__(self) -> str:
        return f"<File {self.display_name} (ID: {self.id})>"


Index(
    "uq_files_owner_display_name_active",
    File.owner_id,
    File.display_name,
    unique=True,
    sqlite_where=File.is_active == true(),
    postgresql_where=File.is_active == true(),
)

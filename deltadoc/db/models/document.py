from sqlalchemy import (
    Column, String, Text, Integer, Boolean, ForeignKey, UUID, JSON, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from deltadoc.db.base import BaseModel


class Document(BaseModel):
    __tablename__ = "documents"
    
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False, default="")
    current_version = Column(Integer, nullable=False, default=0)
    owner_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    
    # Relationships
    versions = relationship("DocumentVersion", back_populates="document", cascade="all, delete-orphan")


class DocumentVersion(BaseModel):
    __tablename__ = "document_versions"
    __table_args__ = (
        UniqueConstraint("document_id", "version_number", name="uq_document_versions_number"),
        Index("ix_document_versions_document_created", "document_id", "created_at"),
    )
    
    document_id = Column(
        UUID(as_uuid=True), ForeignKey("documents.uuid", ondelete="CASCADE"), nullable=False
    )
    version_number = Column(Integer, nullable=False)
    ops = Column(JSON, nullable=False, default=list)
    is_snapshot = Column(Boolean, nullable=False, default=False)
    snapshot_content = Column(Text, nullable=True)
    author_id = Column(UUID(as_uuid=True), nullable=False)
    message = Column(String(1000), nullable=False, default="")
    change_summary = Column(JSON, nullable=False, default=dict)
    delta_size = Column(Integer, nullable=False, default=0)
    
    # Relationships
    document = relationship("Document", back_populates="versions")

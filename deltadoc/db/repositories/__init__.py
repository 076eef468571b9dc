from deltadoc.db.repositories.document_repository import DocumentRepository, VersionRepository

__all__ = [
    "DocumentRepository",
    "VersionRepository"
]

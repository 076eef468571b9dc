from deltadoc.db.base import Base
from deltadoc.db.models.document import Document, DocumentVersion

__all__ = [
    "Base",
    "Document",
    "DocumentVersion",
]

"""
Интерфейсы хранилищ, от которых зависит VersionManager.

Реализации для PostgreSQL/SQLite лежат в ``deltadoc.db.repositories``.
"""
import uuid
from typing import Iterable, List, Optional, Protocol

from deltadoc.domains.versions.entities import Document, DocumentVersion


class VersionStore(Protocol):
    """Журнал версий документа"""

    async def find(
        self,
        file_id: uuid.UUID,
        *,
        min_version: Optional[int] = None,
        max_version: Optional[int] = None,
        is_snapshot: Optional[bool] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
        include_payload: bool = True,
    ) -> List[DocumentVersion]: ...

    async def find_one(self, file_id: uuid.UUID, version_number: int) -> Optional[DocumentVersion]: ...

    async def latest_version_number(self, file_id: uuid.UUID) -> int: ...

    async def count(self, file_id: uuid.UUID) -> int: ...

    async def create(self, version: DocumentVersion) -> DocumentVersion:
        """Сохранение версии; при занятом номере ``VersionConflictError``"""
        ...

    async def delete_many(self, file_id: uuid.UUID, version_numbers: Iterable[int]) -> int: ...


class DocumentStore(Protocol):
    """Хранилище живых документов (внешний владелец содержимого)"""

    async def find_by_id_and_owner(self, file_id: uuid.UUID, owner_id: uuid.UUID) -> Optional[Document]: ...

    async def find_by_id(self, file_id: uuid.UUID) -> Optional[Document]: ...

    async def save(self, document: Document) -> Optional[Document]:
        """Сохранение указателя; версия с меньшим номером не перетирает более новую"""
        ...

from typing import Iterable, Optional, List, TYPE_CHECKING
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import defer
import uuid

from deltadoc.core.exceptions import VersionConflictError
from deltadoc.db.models.document import Document as DocumentModel, DocumentVersion as DocumentVersionModel

if TYPE_CHECKING:
    from deltadoc.domains.versions.entities import Document, DocumentVersion


class DocumentRepository:
    """Репозиторий для работы с документами"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, document: "Document") -> "Document":
        """Создание нового документа"""
        db_document = DocumentModel(
            uuid=document.uuid,
            title=document.title,
            content=document.content,
            current_version=document.current_version,
            owner_id=document.owner_id
        )

        self.session.add(db_document)
        await self.session.commit()
        return self._to_domain(db_document)

    async def find_by_id(self, file_id: uuid.UUID) -> Optional["Document"]:
        """Получение документа по UUID"""
        result = await self.session.execute(
            select(DocumentModel).where(DocumentModel.uuid == file_id)
        )
        db_document = result.scalar_one_or_none()
        return self._to_domain(db_document) if db_document else None

    async def find_by_id_and_owner(self, file_id: uuid.UUID, owner_id: uuid.UUID) -> Optional["Document"]:
        """Получение документа с проверкой владельца"""
        result = await self.session.execute(
            select(DocumentModel).where(
                and_(
                    DocumentModel.uuid == file_id,
                    DocumentModel.owner_id == owner_id
                )
            )
        )
        db_document = result.scalar_one_or_none()
        return self._to_domain(db_document) if db_document else None

    async def save(self, document: "Document") -> Optional["Document"]:
        """Обновление живого содержимого и указателя версии.

        Указатель не откатывается назад: запись с меньшим номером версии, чем
        уже сохранённый, ничего не меняет. Возвращает состояние из БД.
        """
        stmt = (
            update(DocumentModel)
            .where(
                and_(
                    DocumentModel.uuid == document.uuid,
                    DocumentModel.current_version <= document.current_version
                )
            )
            .values(
                title=document.title,
                content=document.content,
                current_version=document.current_version,
                updated_at=document.updated_at
            )
            .execution_options(synchronize_session="fetch")
        )

        await self.session.execute(stmt)
        await self.session.commit()

        result = await self.session.execute(
            select(DocumentModel)
            .where(DocumentModel.uuid == document.uuid)
            .execution_options(populate_existing=True)
        )
        db_document = result.scalar_one_or_none()
        return self._to_domain(db_document) if db_document else None

    def _to_domain(self, db_document: DocumentModel) -> "Document":
        """Преобразование модели БД в доменную сущность"""
        from deltadoc.domains.versions.entities import Document

        return Document(
            uuid=db_document.uuid,
            title=db_document.title,
            owner_id=db_document.owner_id,
            content=db_document.content,
            current_version=db_document.current_version,
            created_at=db_document.created_at,
            updated_at=db_document.updated_at
        )


class VersionRepository:
    """Репозиторий журнала версий документа"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, version: "DocumentVersion") -> "DocumentVersion":
        """Добавление версии в журнал"""
        from deltadoc.domains.versions.entities import ops_to_wire

        db_version = DocumentVersionModel(
            uuid=version.uuid,
            document_id=version.document_id,
            version_number=version.version_number,
            ops=ops_to_wire(version.ops or []),
            is_snapshot=version.is_snapshot,
            snapshot_content=version.snapshot_content,
            author_id=version.author_id,
            message=version.message,
            change_summary=version.change_summary.to_dict(),
            delta_size=version.delta_size,
            created_at=version.created_at
        )

        self.session.add(db_version)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise VersionConflictError(
                f"Version {version.version_number} already exists for file {version.document_id}"
            )
        return self._to_domain(db_version)

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
    ) -> List["DocumentVersion"]:
        """Выборка версий документа по диапазону номеров"""
        query = select(DocumentVersionModel).where(DocumentVersionModel.document_id == file_id)

        if min_version is not None:
            query = query.where(DocumentVersionModel.version_number >= min_version)
        if max_version is not None:
            query = query.where(DocumentVersionModel.version_number <= max_version)
        if is_snapshot is not None:
            query = query.where(DocumentVersionModel.is_snapshot == is_snapshot)
        if not include_payload:
            query = query.options(
                defer(DocumentVersionModel.ops),
                defer(DocumentVersionModel.snapshot_content)
            )

        order = DocumentVersionModel.version_number
        query = query.order_by(order.desc() if descending else order.asc())

        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        result = await self.session.execute(query)
        db_versions = result.scalars().all()
        return [self._to_domain(v, include_payload=include_payload) for v in db_versions]

    async def find_one(self, file_id: uuid.UUID, version_number: int) -> Optional["DocumentVersion"]:
        """Получение версии по номеру"""
        result = await self.session.execute(
            select(DocumentVersionModel)
            .where(
                and_(
                    DocumentVersionModel.document_id == file_id,
                    DocumentVersionModel.version_number == version_number
                )
            )
        )
        db_version = result.scalar_one_or_none()
        return self._to_domain(db_version) if db_version else None

    async def latest_version_number(self, file_id: uuid.UUID) -> int:
        """Номер последней версии (0, если версий нет)"""
        result = await self.session.execute(
            select(func.max(DocumentVersionModel.version_number))
            .where(DocumentVersionModel.document_id == file_id)
        )
        return result.scalar() or 0

    async def count(self, file_id: uuid.UUID) -> int:
        """Подсчет количества версий документа"""
        result = await self.session.execute(
            select(func.count(DocumentVersionModel.uuid))
            .where(DocumentVersionModel.document_id == file_id)
        )
        return result.scalar()

    async def delete_many(self, file_id: uuid.UUID, version_numbers: Iterable[int]) -> int:
        """Удаление версий по номерам"""
        numbers = list(version_numbers)
        if not numbers:
            return 0

        stmt = (
            delete(DocumentVersionModel)
            .where(
                and_(
                    DocumentVersionModel.document_id == file_id,
                    DocumentVersionModel.version_number.in_(numbers)
                )
            )
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount

    def _to_domain(self, db_version: DocumentVersionModel, include_payload: bool = True) -> "DocumentVersion":
        """Преобразование модели БД в доменную сущность"""
        from deltadoc.domains.versions.entities import ChangeSummary, DocumentVersion, ops_from_wire

        return DocumentVersion(
            uuid=db_version.uuid,
            document_id=db_version.document_id,
            version_number=db_version.version_number,
            author_id=db_version.author_id,
            ops=ops_from_wire(db_version.ops) if include_payload else None,
            is_snapshot=db_version.is_snapshot,
            snapshot_content=db_version.snapshot_content if include_payload else None,
            message=db_version.message,
            change_summary=ChangeSummary.from_dict(db_version.change_summary),
            delta_size=db_version.delta_size,
            created_at=db_version.created_at
        )

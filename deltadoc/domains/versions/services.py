import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from deltadoc.core.config import Settings, settings as default_settings
from deltadoc.core.exceptions import (
    HistoryIntegrityError, InternalError, InvalidInputError, NotFoundError, VersionConflictError
)
from deltadoc.core.logging import get_logger
from deltadoc.domains.versions.delta import calculate_change_stats, generate_change_summary, optimize
from deltadoc.domains.versions.diff import DiffEngine
from deltadoc.domains.versions.entities import (
    ChangeStats, ChangeSummary, Document, DocumentVersion, Operation, SaveType
)
from deltadoc.domains.versions.locks import FileLockRegistry, file_locks
from deltadoc.domains.versions.reconstruct import Reconstructor
from deltadoc.domains.versions.snapshot import SnapshotPolicy
from deltadoc.domains.versions.store import DocumentStore, VersionStore

logger = get_logger(__name__)

MIN_KEEP_VERSIONS = 10
MAX_KEEP_VERSIONS = 200
MAX_PAGE_SIZE = 100


@dataclass
class CreateResult:
    version: DocumentVersion
    change_stats: ChangeStats
    is_snapshot: bool


@dataclass
class VersionContent:
    version: DocumentVersion
    content: str
    change_stats: ChangeStats


@dataclass
class VersionPage:
    versions: List[DocumentVersion]
    total: int
    current_version: int
    has_more: bool


@dataclass
class RevertResult:
    new_version: DocumentVersion
    reverted_to: int
    content: str


@dataclass
class Comparison:
    from_version: DocumentVersion
    to_version: DocumentVersion
    delta: List[Operation]
    change_stats: ChangeStats
    summary: str
    from_content: str
    to_content: str


@dataclass
class CleanupResult:
    deleted_count: int
    kept_versions: int


@dataclass
class RepairResult:
    repaired: bool
    message: str


class VersionManager:
    """Сервис истории версий документа.

    Единственная точка, которая пишет в журнал версий. Запись всегда идёт в
    два шага: сначала версия в журнал, затем живой указатель документа.
    Если второй шаг не удался, журнал остаётся источником истины и указатель
    восстанавливается через ``rebuild_live_pointer`` или следующим сохранением.
    """

    def __init__(
        self,
        version_store: VersionStore,
        document_store: DocumentStore,
        diff_engine: Optional[DiffEngine] = None,
        snapshot_policy: Optional[SnapshotPolicy] = None,
        locks: Optional[FileLockRegistry] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or default_settings
        self.version_store = version_store
        self.document_store = document_store
        self.diff_engine = diff_engine or DiffEngine(
            window=self.settings.diff_window,
            min_match=self.settings.diff_min_match
        )
        self.snapshot_policy = snapshot_policy or SnapshotPolicy(
            interval=self.settings.snapshot_interval,
            max_delta_ops=self.settings.snapshot_max_delta_ops
        )
        self.locks = locks if locks is not None else file_locks
        self.reconstructor = Reconstructor(version_store)

    @classmethod
    def from_session(cls, session: AsyncSession, **kwargs) -> "VersionManager":
        """Менеджер поверх репозиториев SQLAlchemy"""
        from deltadoc.db.repositories.document_repository import DocumentRepository, VersionRepository

        return cls(VersionRepository(session), DocumentRepository(session), **kwargs)

    # ------------------------------------------------------------------
    # Запись
    # ------------------------------------------------------------------

    async def create_version(
        self,
        file_id: uuid.UUID,
        owner_id: uuid.UUID,
        content: str,
        author_id: uuid.UUID,
        message: Optional[str] = None,
        save_type: Union[SaveType, str] = SaveType.MANUAL
    ) -> CreateResult:
        """Сохранение нового содержимого как следующей версии"""
        self._validate_content(content)
        self._validate_message(message)
        save_type = self._validate_save_type(save_type)

        async with self.locks.hold(file_id):
            document = await self._get_owned_document(file_id, owner_id)
            return await self._commit(document, content, author_id, message or "", save_type)

    async def revert(
        self,
        file_id: uuid.UUID,
        owner_id: uuid.UUID,
        version_number: int,
        author_id: uuid.UUID,
        message: Optional[str] = None
    ) -> RevertResult:
        """Возврат к версии новым коммитом поверх истории"""
        self._validate_version_number(version_number)
        self._validate_message(message)

        async with self.locks.hold(file_id):
            document = await self._get_owned_document(file_id, owner_id)
            content = await self.reconstructor.reconstruct(file_id, version_number)
            result = await self._commit(
                document,
                content,
                author_id,
                message or f"Reverted to version {version_number}",
                SaveType.MANUAL,
                reverted_to=version_number
            )

        logger.info(
            "version_reverted",
            file_id=str(file_id),
            reverted_to=version_number,
            new_version=result.version.version_number,
        )
        return RevertResult(new_version=result.version, reverted_to=version_number, content=content)

    async def _commit(
        self,
        document: Document,
        content: str,
        author_id: uuid.UUID,
        message: str,
        save_type: SaveType,
        reverted_to: Optional[int] = None
    ) -> CreateResult:
        retries = self.settings.version_conflict_retries

        for attempt in range(retries + 1):
            try:
                result = await self._append_version(
                    document.uuid, content, author_id, message, save_type, reverted_to
                )
                break
            except VersionConflictError:
                if attempt == retries:
                    raise
                logger.warning(
                    "version_number_conflict",
                    file_id=str(document.uuid),
                    attempt=attempt + 1,
                )

        await self._advance_live_pointer(document, content, result.version.version_number)
        return result

    async def _append_version(
        self,
        file_id: uuid.UUID,
        content: str,
        author_id: uuid.UUID,
        message: str,
        save_type: SaveType,
        reverted_to: Optional[int]
    ) -> CreateResult:
        latest = await self.version_store.latest_version_number(file_id)
        version_number = latest + 1

        previous = await self.reconstructor.reconstruct(file_id, latest) if latest else ""

        ops = optimize(self.diff_engine.diff(previous, content))
        stats = calculate_change_stats(ops, previous)
        summary = ChangeSummary.from_stats(
            stats,
            generate_change_summary(stats),
            SaveType.INITIAL if latest == 0 else save_type,
            reverted_to=reverted_to
        )

        # Версия 1 всегда снимок: без неё цепочку не восстановить.
        # Пустая дельта тоже хранится снимком.
        is_snapshot = (
            latest == 0
            or not ops
            or self.snapshot_policy.should_snapshot(version_number, len(ops))
        )

        if is_snapshot:
            version = DocumentVersion.create_snapshot(
                document_id=file_id,
                version_number=version_number,
                content=content,
                author_id=author_id,
                message=message,
                change_summary=summary,
                delta_size=len(ops)
            )
        else:
            version = DocumentVersion.create_delta(
                document_id=file_id,
                version_number=version_number,
                ops=ops,
                author_id=author_id,
                message=message,
                change_summary=summary
            )
        version.validate()

        stored = await self.version_store.create(version)

        logger.info(
            "version_created",
            file_id=str(file_id),
            version=version_number,
            is_snapshot=is_snapshot,
            delta_size=len(ops),
            save_type=summary.save_type.value,
        )
        return CreateResult(version=stored, change_stats=stats, is_snapshot=is_snapshot)

    async def _advance_live_pointer(self, document: Document, content: str, version_number: int) -> None:
        document.advance(content, version_number)
        try:
            saved = await self.document_store.save(document)
        except Exception as exc:
            logger.error(
                "live_pointer_update_failed",
                file_id=str(document.uuid),
                version=version_number,
                error=str(exc),
            )
            raise InternalError(
                f"Version {version_number} was recorded but the document could not be updated"
            ) from exc

        # Указатель только растёт: более новая версия уже записана другим процессом
        if saved is not None and saved.current_version > version_number:
            logger.info(
                "live_pointer_already_ahead",
                file_id=str(document.uuid),
                version=version_number,
                live_version=saved.current_version,
            )

    # ------------------------------------------------------------------
    # Чтение
    # ------------------------------------------------------------------

    async def get_version(
        self,
        file_id: uuid.UUID,
        owner_id: uuid.UUID,
        version_number: int
    ) -> VersionContent:
        """Метаданные и текст конкретной версии"""
        self._validate_version_number(version_number)
        await self._get_owned_document(file_id, owner_id)

        version = await self.version_store.find_one(file_id, version_number)
        if version is None:
            raise NotFoundError(f"Version {version_number} not found")

        if version.is_snapshot and version.snapshot_content is not None:
            content = version.snapshot_content
        else:
            content = await self.reconstructor.reconstruct(file_id, version_number)

        return VersionContent(
            version=version,
            content=content,
            change_stats=version.change_summary.to_stats()
        )

    async def list_versions(
        self,
        file_id: uuid.UUID,
        owner_id: uuid.UUID,
        limit: int = 20,
        offset: int = 0,
        include_deltas: bool = False
    ) -> VersionPage:
        """Страница истории, новые версии первыми"""
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise InvalidInputError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
        if offset < 0:
            raise InvalidInputError("Offset must be non-negative")

        document = await self._get_owned_document(file_id, owner_id)

        versions = await self.version_store.find(
            file_id,
            descending=True,
            limit=limit,
            offset=offset,
            include_payload=include_deltas
        )
        total = await self.version_store.count(file_id)

        return VersionPage(
            versions=versions,
            total=total,
            current_version=document.current_version,
            has_more=offset + len(versions) < total
        )

    async def compare(
        self,
        file_id: uuid.UUID,
        owner_id: uuid.UUID,
        from_version: int,
        to_version: int
    ) -> Comparison:
        """Сравнение двух версий свежим диффом восстановленных текстов"""
        self._validate_version_number(from_version, "from_version")
        self._validate_version_number(to_version, "to_version")
        await self._get_owned_document(file_id, owner_id)

        from_data = await self.version_store.find_one(file_id, from_version)
        if from_data is None:
            raise NotFoundError(f"Version {from_version} not found")
        to_data = await self.version_store.find_one(file_id, to_version)
        if to_data is None:
            raise NotFoundError(f"Version {to_version} not found")

        from_content = await self.reconstructor.reconstruct(file_id, from_version)
        to_content = await self.reconstructor.reconstruct(file_id, to_version)

        delta = self.diff_engine.diff(from_content, to_content)
        stats = calculate_change_stats(delta, from_content)

        return Comparison(
            from_version=from_data,
            to_version=to_data,
            delta=delta,
            change_stats=stats,
            summary=generate_change_summary(stats),
            from_content=from_content,
            to_content=to_content
        )

    # ------------------------------------------------------------------
    # Обслуживание
    # ------------------------------------------------------------------

    async def cleanup(
        self,
        file_id: uuid.UUID,
        owner_id: uuid.UUID,
        keep_versions: int = 50
    ) -> CleanupResult:
        """Удаление старых дельт сверх ``keep_versions`` последних версий.

        Снимки не удаляются никогда. Дельты между оставляемой версией и её
        ближайшим снимком тоже сохраняются, иначе версию не восстановить.
        """
        if not MIN_KEEP_VERSIONS <= keep_versions <= MAX_KEEP_VERSIONS:
            raise InvalidInputError(
                f"keep_versions must be between {MIN_KEEP_VERSIONS} and {MAX_KEEP_VERSIONS}"
            )

        async with self.locks.hold(file_id):
            await self._get_owned_document(file_id, owner_id)

            versions = await self.version_store.find(file_id, include_payload=False)
            deletable = self._deletable_versions(file_id, versions, keep_versions)
            deleted = await self.version_store.delete_many(file_id, deletable)

        logger.info(
            "history_cleanup",
            file_id=str(file_id),
            keep_versions=keep_versions,
            deleted=deleted,
        )
        return CleanupResult(deleted_count=deleted, kept_versions=len(versions) - deleted)

    @staticmethod
    def _deletable_versions(
        file_id: uuid.UUID,
        versions: List[DocumentVersion],
        keep_versions: int
    ) -> List[int]:
        if len(versions) <= keep_versions:
            return []

        snapshots = [v.version_number for v in versions if v.is_snapshot]
        if not snapshots or snapshots[0] != 1:
            raise HistoryIntegrityError(
                "Version 1 is missing or is not a snapshot; history must be repaired"
            )

        retained = [v.version_number for v in versions[-keep_versions:]]
        needed = set(retained) | set(snapshots)

        for number in retained:
            anchor = max(s for s in snapshots if s <= number)
            needed.update(range(anchor, number + 1))

        return [v.version_number for v in versions if v.version_number not in needed]

    async def repair(
        self,
        file_id: uuid.UUID,
        owner_id: uuid.UUID,
        author_id: uuid.UUID
    ) -> RepairResult:
        """Пересоздание корневого снимка из живого содержимого документа"""
        async with self.locks.hold(file_id):
            document = await self._get_owned_document(file_id, owner_id)

            root = await self.version_store.find_one(file_id, 1)
            if root is not None and root.is_snapshot and root.snapshot_content is not None:
                return RepairResult(repaired=False, message="Version history is already correct")

            if root is not None:
                await self.version_store.delete_many(file_id, [1])

            content = document.content
            summary = ChangeSummary(
                summary="Emergency repair of initial version",
                insertions=len(content),
                lines_added=content.count("\n") + 1,
                lines_removed=0,
                lines_modified=0,
                character_delta=len(content),
                total_ops=1 if content else 0,
                save_type=SaveType.INITIAL
            )
            version = DocumentVersion.create_snapshot(
                document_id=file_id,
                version_number=1,
                content=content,
                author_id=author_id,
                message="Repaired initial version",
                change_summary=summary
            )
            await self.version_store.create(version)

            if document.current_version < 1:
                await self._advance_live_pointer(document, content, 1)

        logger.warning(
            "history_repaired",
            file_id=str(file_id),
            replaced_malformed_root=root is not None,
        )
        return RepairResult(repaired=True, message="Version history repaired successfully")

    async def rebuild_live_pointer(self, file_id: uuid.UUID, owner_id: uuid.UUID) -> Document:
        """Синхронизация живого содержимого с последней версией журнала"""
        async with self.locks.hold(file_id):
            document = await self._get_owned_document(file_id, owner_id)

            latest = await self.version_store.latest_version_number(file_id)
            if latest == 0:
                return document

            content = await self.reconstructor.reconstruct(file_id, latest)
            if document.content != content or document.current_version != latest:
                await self._advance_live_pointer(document, content, latest)
                logger.info("live_pointer_rebuilt", file_id=str(file_id), version=latest)

        return document

    async def history_debug(self, file_id: uuid.UUID, owner_id: uuid.UUID) -> List[Dict[str, Any]]:
        """Диагностика журнала: по строке на версию"""
        await self._get_owned_document(file_id, owner_id)

        versions = await self.version_store.find(file_id)
        broken = set(await self.reconstructor.verify_chain(file_id))

        return [
            {
                "version": v.version_number,
                "is_snapshot": v.is_snapshot,
                "has_snapshot_content": v.snapshot_content is not None,
                "snapshot_content_length": len(v.snapshot_content or ""),
                "snapshot_content_preview": (v.snapshot_content or "")[:100],
                "delta_length": len(v.ops or []),
                "message": v.message,
                "save_type": v.change_summary.save_type.value,
                "reconstructible": v.version_number not in broken,
            }
            for v in versions
        ]

    # ------------------------------------------------------------------
    # Проверки
    # ------------------------------------------------------------------

    async def _get_owned_document(self, file_id: uuid.UUID, owner_id: uuid.UUID) -> Document:
        document = await self.document_store.find_by_id_and_owner(file_id, owner_id)
        if document is None:
            raise NotFoundError("File not found or access denied")
        return document

    def _validate_content(self, content: str) -> None:
        if not isinstance(content, str):
            raise InvalidInputError("Content must be a string")
        if len(content) > self.settings.max_content_length:
            raise InvalidInputError(
                f"Content exceeds the maximum length of {self.settings.max_content_length} characters"
            )

    def _validate_message(self, message: Optional[str]) -> None:
        if message is not None and len(message) > self.settings.max_message_length:
            raise InvalidInputError(
                f"Message cannot exceed {self.settings.max_message_length} characters"
            )

    @staticmethod
    def _validate_save_type(save_type: Union[SaveType, str]) -> SaveType:
        try:
            save_type = SaveType(save_type)
        except ValueError:
            raise InvalidInputError("Save type must be auto or manual")
        if save_type is SaveType.INITIAL:
            raise InvalidInputError("Save type must be auto or manual")
        return save_type

    @staticmethod
    def _validate_version_number(version_number: int, name: str = "version number") -> None:
        if isinstance(version_number, bool) or not isinstance(version_number, int) or version_number < 1:
            raise InvalidInputError(f"Invalid {name}")

import uuid
from typing import List

from deltadoc.core.exceptions import (
    HistoryIntegrityError, InvalidInputError, NotFoundError
)
from deltadoc.core.logging import get_logger
from deltadoc.domains.versions.delta import apply
from deltadoc.domains.versions.entities import DocumentVersion
from deltadoc.domains.versions.store import VersionStore

logger = get_logger(__name__)


class Reconstructor:
    """Восстановление текста версии: ближайший снимок плюс последующие дельты"""

    def __init__(self, store: VersionStore):
        self.store = store

    async def reconstruct(self, file_id: uuid.UUID, target_version: int) -> str:
        """Точный текст версии ``target_version``"""
        if target_version < 1:
            raise InvalidInputError("Version number must be a positive integer")

        target = await self.store.find_one(file_id, target_version)
        if target is None:
            raise NotFoundError(f"Version {target_version} not found")

        await self._check_root(file_id)

        if target.is_snapshot:
            return target.snapshot_content

        snapshots = await self.store.find(
            file_id,
            max_version=target_version,
            is_snapshot=True,
            descending=True,
            limit=1,
        )
        snapshot = snapshots[0]

        deltas = await self.store.find(
            file_id,
            min_version=snapshot.version_number + 1,
            max_version=target_version,
            is_snapshot=False,
        )
        self._check_contiguous(file_id, snapshot, deltas, target_version)

        content = snapshot.snapshot_content
        for version in deltas:
            content = self._apply_version(file_id, content, version)

        return content

    async def verify_chain(self, file_id: uuid.UUID) -> List[int]:
        """Номера версий, которые невозможно восстановить (пустой список, если всё в порядке)"""
        versions = await self.store.find(file_id)
        if not versions:
            return []

        root = versions[0]
        if root.version_number != 1 or not root.is_snapshot or root.snapshot_content is None:
            return [v.version_number for v in versions]

        broken = []
        content = None
        previous_number = 0

        for version in versions:
            if version.is_snapshot:
                content = version.snapshot_content
            elif content is None or version.version_number != previous_number + 1:
                content = None
                broken.append(version.version_number)
            else:
                try:
                    content = self._apply_version(file_id, content, version)
                except HistoryIntegrityError:
                    content = None
                    broken.append(version.version_number)
            previous_number = version.version_number

        return broken

    async def _check_root(self, file_id: uuid.UUID) -> None:
        root = await self.store.find_one(file_id, 1)
        if root is None or not root.is_snapshot or root.snapshot_content is None:
            logger.error(
                "history_integrity_error",
                file_id=str(file_id),
                reason="missing_root_snapshot",
                root_present=root is not None,
            )
            raise HistoryIntegrityError(
                "Version 1 is missing or is not a snapshot; history must be repaired"
            )

    @staticmethod
    def _check_contiguous(
        file_id: uuid.UUID,
        snapshot: DocumentVersion,
        deltas: List[DocumentVersion],
        target_version: int
    ) -> None:
        expected = list(range(snapshot.version_number + 1, target_version + 1))
        actual = [v.version_number for v in deltas]
        if actual != expected:
            missing = sorted(set(expected) - set(actual))
            logger.error(
                "history_integrity_error",
                file_id=str(file_id),
                reason="delta_gap",
                snapshot=snapshot.version_number,
                target=target_version,
                missing=missing,
            )
            raise HistoryIntegrityError(
                f"Cannot reconstruct version {target_version}: missing deltas {missing}"
            )

    @staticmethod
    def _apply_version(file_id: uuid.UUID, content: str, version: DocumentVersion) -> str:
        try:
            return apply(content, version.ops)
        except InvalidInputError as exc:
            logger.error(
                "history_integrity_error",
                file_id=str(file_id),
                reason="delta_mismatch",
                version=version.version_number,
            )
            raise HistoryIntegrityError(
                f"Delta of version {version.version_number} does not fit its base: {exc.message}"
            )

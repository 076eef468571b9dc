"""In-memory stores and store wrappers for exercising VersionManager."""
import asyncio
import copy
import uuid
from typing import Dict, Iterable, List, Optional, Tuple

from deltadoc.core.exceptions import VersionConflictError
from deltadoc.db.repositories import DocumentRepository
from deltadoc.domains.versions.entities import Document, DocumentVersion


class InMemoryVersionStore:
    def __init__(self):
        self.rows: Dict[Tuple[uuid.UUID, int], DocumentVersion] = {}
        self.calls: List[str] = []
        self.conflicts_to_raise = 0

    async def _yield(self, name: str) -> None:
        self.calls.append(name)
        # lets concurrent tasks interleave at every storage call
        await asyncio.sleep(0)

    async def find(
        self,
        file_id,
        *,
        min_version=None,
        max_version=None,
        is_snapshot=None,
        descending=False,
        limit=None,
        offset=0,
        include_payload=True,
    ) -> List[DocumentVersion]:
        await self._yield("find")
        rows = [
            v for (fid, _), v in self.rows.items()
            if fid == file_id
            and (min_version is None or v.version_number >= min_version)
            and (max_version is None or v.version_number <= max_version)
            and (is_snapshot is None or v.is_snapshot == is_snapshot)
        ]
        rows.sort(key=lambda v: v.version_number, reverse=descending)
        rows = rows[offset:]
        if limit is not None:
            rows = rows[:limit]

        result = []
        for row in rows:
            row = copy.deepcopy(row)
            if not include_payload:
                row.ops = None
                row.snapshot_content = None
            result.append(row)
        return result

    async def find_one(self, file_id, version_number) -> Optional[DocumentVersion]:
        await self._yield("find_one")
        row = self.rows.get((file_id, version_number))
        return copy.deepcopy(row) if row else None

    async def latest_version_number(self, file_id) -> int:
        await self._yield("latest_version_number")
        return max((n for (fid, n) in self.rows if fid == file_id), default=0)

    async def count(self, file_id) -> int:
        await self._yield("count")
        return sum(1 for (fid, _) in self.rows if fid == file_id)

    async def create(self, version: DocumentVersion) -> DocumentVersion:
        await self._yield("create")
        key = (version.document_id, version.version_number)
        if self.conflicts_to_raise > 0:
            self.conflicts_to_raise -= 1
            raise VersionConflictError(f"Version {version.version_number} already exists")
        if key in self.rows:
            raise VersionConflictError(f"Version {version.version_number} already exists")
        self.rows[key] = copy.deepcopy(version)
        return copy.deepcopy(version)

    async def delete_many(self, file_id, version_numbers: Iterable[int]) -> int:
        await self._yield("delete_many")
        deleted = 0
        for number in list(version_numbers):
            if self.rows.pop((file_id, number), None) is not None:
                deleted += 1
        return deleted

    def put(self, version: DocumentVersion) -> None:
        """Store a row directly, bypassing every check (for corrupt histories)."""
        self.rows[(version.document_id, version.version_number)] = copy.deepcopy(version)


class InMemoryDocumentStore:
    def __init__(self):
        self.documents: Dict[uuid.UUID, Document] = {}
        self.fail_saves = False
        self.calls: List[str] = []

    def add(self, document: Document) -> Document:
        self.documents[document.uuid] = copy.deepcopy(document)
        return document

    async def find_by_id(self, file_id) -> Optional[Document]:
        self.calls.append("find_by_id")
        await asyncio.sleep(0)
        document = self.documents.get(file_id)
        return copy.deepcopy(document) if document else None

    async def find_by_id_and_owner(self, file_id, owner_id) -> Optional[Document]:
        self.calls.append("find_by_id_and_owner")
        await asyncio.sleep(0)
        document = self.documents.get(file_id)
        if document is None or document.owner_id != owner_id:
            return None
        return copy.deepcopy(document)

    async def save(self, document: Document) -> Document:
        self.calls.append("save")
        await asyncio.sleep(0)
        if self.fail_saves:
            raise ConnectionError("document store unavailable")
        stored = self.documents.get(document.uuid)
        if stored is None or stored.current_version <= document.current_version:
            self.documents[document.uuid] = copy.deepcopy(document)
        return copy.deepcopy(self.documents[document.uuid])


class HeldSaveDocumentStore(InMemoryDocumentStore):
    """Parks the pointer write of one version until ``release`` is set."""

    def __init__(self, hold_version: int):
        super().__init__()
        self.hold_version = hold_version
        self.reached = asyncio.Event()
        self.release = asyncio.Event()

    async def save(self, document: Document) -> Document:
        if document.current_version == self.hold_version:
            self.reached.set()
            await self.release.wait()
        return await super().save(document)


class HeldSaveDocumentRepository(DocumentRepository):
    """DocumentRepository whose pointer write for one version waits for ``release``."""

    def __init__(self, session, hold_version: int):
        super().__init__(session)
        self.hold_version = hold_version
        self.reached = asyncio.Event()
        self.release = asyncio.Event()

    async def save(self, document: Document) -> Optional[Document]:
        if document.current_version == self.hold_version:
            self.reached.set()
            await self.release.wait()
        return await super().save(document)

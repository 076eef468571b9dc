import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any

from deltadoc.core.exceptions import InvalidInputError, HistoryIntegrityError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OperationType(Enum):
    """Типы операций дельты"""
    RETAIN = "retain"
    INSERT = "insert"
    DELETE = "delete"


class SaveType(str, Enum):
    """Способ сохранения версии"""
    AUTO = "auto"
    MANUAL = "manual"
    INITIAL = "initial"


class Operation(ABC):
    """Операция дельты.

    Конкретные варианты: ``Retain``, ``Insert`` и ``Delete``. У каждого ровно
    один тип полезной нагрузки (число символов или вставляемый текст).
    ``position`` хранит курсор исходного текста в момент вычисления операции и
    используется только для отображения.
    """

    operation_type: OperationType

    def __init__(self, position: int = 0):
        self.position = position

    @property
    @abstractmethod
    def data(self):
        ...

    @property
    @abstractmethod
    def length(self) -> int:
        ...

    def is_empty(self) -> bool:
        return self.length == 0

    @abstractmethod
    def merge(self, other: "Operation") -> "Operation":
        """Слияние с соседней операцией того же типа"""

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация операции в словарь"""
        return {
            "op": self.operation_type.value,
            "data": self.data,
            "position": self.position,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Operation":
        """Десериализация операции из словаря"""
        try:
            operation_type = OperationType(data["op"])
            payload = data["data"]
        except (KeyError, ValueError, TypeError):
            raise InvalidInputError(f"Malformed operation: {data!r}")

        position = data.get("position", 0) or 0

        if operation_type is OperationType.INSERT:
            if not isinstance(payload, str):
                raise InvalidInputError("Insert operation requires text data")
            return Insert(payload, position=position)

        if isinstance(payload, bool) or not isinstance(payload, int) or payload < 0:
            raise InvalidInputError(
                f"{operation_type.value.capitalize()} operation requires a non-negative count"
            )
        if operation_type is OperationType.RETAIN:
            return Retain(payload, position=position)
        return Delete(payload, position=position)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Operation):
            return False
        return self.operation_type == other.operation_type and self.data == other.data

    def __hash__(self) -> int:
        return hash((self.operation_type, self.data))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.data!r})"


class Retain(Operation):
    """Пропуск ``count`` символов без изменений"""

    operation_type = OperationType.RETAIN

    def __init__(self, count: int, position: int = 0):
        super().__init__(position)
        self.count = count

    @property
    def data(self) -> int:
        return self.count

    @property
    def length(self) -> int:
        return self.count

    def merge(self, other: "Retain") -> "Retain":
        return Retain(self.count + other.count, position=self.position)


class Insert(Operation):
    """Вставка текста в позицию курсора"""

    operation_type = OperationType.INSERT

    def __init__(self, text: str, position: int = 0):
        super().__init__(position)
        self.text = text

    @property
    def data(self) -> str:
        return self.text

    @property
    def length(self) -> int:
        return len(self.text)

    def merge(self, other: "Insert") -> "Insert":
        return Insert(self.text + other.text, position=self.position)


class Delete(Operation):
    """Удаление ``count`` символов в позиции курсора"""

    operation_type = OperationType.DELETE

    def __init__(self, count: int, position: int = 0):
        super().__init__(position)
        self.count = count

    @property
    def data(self) -> int:
        return self.count

    @property
    def length(self) -> int:
        return self.count

    def merge(self, other: "Delete") -> "Delete":
        return Delete(self.count + other.count, position=self.position)


def ops_to_wire(ops: List[Operation]) -> List[Dict[str, Any]]:
    return [op.to_dict() for op in ops]


def ops_from_wire(data: List[Dict[str, Any]]) -> List[Operation]:
    return [Operation.from_dict(item) for item in data or []]


@dataclass
class ChangeStats:
    """Статистика изменений, вычисленная по дельте"""
    insertions: int = 0
    deletions: int = 0
    retentions: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    character_delta: int = 0
    total_ops: int = 0

    @property
    def lines_modified(self) -> int:
        return max(self.lines_added, self.lines_removed)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["lines_modified"] = self.lines_modified
        return result


@dataclass
class ChangeSummary:
    """Метаданные изменения, сохраняемые вместе с версией"""
    summary: str = ""
    insertions: int = 0
    deletions: int = 0
    retentions: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    lines_modified: int = 0
    character_delta: int = 0
    total_ops: int = 0
    save_type: SaveType = SaveType.MANUAL
    reverted_to: Optional[int] = None

    @classmethod
    def from_stats(
        cls,
        stats: ChangeStats,
        summary: str,
        save_type: SaveType,
        reverted_to: Optional[int] = None
    ) -> "ChangeSummary":
        return cls(
            summary=summary,
            insertions=stats.insertions,
            deletions=stats.deletions,
            retentions=stats.retentions,
            lines_added=stats.lines_added,
            lines_removed=stats.lines_removed,
            lines_modified=stats.lines_modified,
            character_delta=stats.character_delta,
            total_ops=stats.total_ops,
            save_type=save_type,
            reverted_to=reverted_to,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["save_type"] = self.save_type.value
        return result

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ChangeSummary":
        data = data or {}
        return cls(
            summary=data.get("summary", ""),
            insertions=data.get("insertions", 0),
            deletions=data.get("deletions", 0),
            retentions=data.get("retentions", 0),
            lines_added=data.get("lines_added", 0),
            lines_removed=data.get("lines_removed", 0),
            lines_modified=data.get("lines_modified", 0),
            character_delta=data.get("character_delta", 0),
            total_ops=data.get("total_ops", 0),
            save_type=SaveType(data.get("save_type", SaveType.MANUAL.value)),
            reverted_to=data.get("reverted_to"),
        )

    def to_stats(self) -> ChangeStats:
        """Статистика, посчитанная при создании версии"""
        return ChangeStats(
            insertions=self.insertions,
            deletions=self.deletions,
            retentions=self.retentions,
            lines_added=self.lines_added,
            lines_removed=self.lines_removed,
            character_delta=self.character_delta,
            total_ops=self.total_ops,
        )


class Document:
    """Живой документ: текущее содержимое и указатель на последнюю версию"""

    def __init__(
        self,
        uuid: uuid.UUID,
        title: str,
        owner_id: uuid.UUID,
        content: str = "",
        current_version: int = 0,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.title = title
        self.owner_id = owner_id
        self.content = content
        self.current_version = current_version
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or utcnow()

    def advance(self, content: str, version_number: int) -> None:
        """Перевод живого указателя на новую версию"""
        self.content = content
        self.current_version = version_number
        self.updated_at = utcnow()

    @classmethod
    def create_document(cls, title: str, owner_id: uuid.UUID, content: str = "") -> "Document":
        """Создание нового документа без истории"""
        return cls(
            uuid=uuid.uuid4(),
            title=title,
            owner_id=owner_id,
            content=content,
            current_version=0
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Document):
            return False
        return self.uuid == other.uuid

    def __repr__(self) -> str:
        return f"Document(uuid={self.uuid}, title={self.title}, version={self.current_version})"


class DocumentVersion:
    """Запись журнала версий. После создания не изменяется.

    ``ops`` равен ``None``, если запись загружена без тяжёлых полей (списки
    версий без дельт).
    """

    def __init__(
        self,
        uuid: uuid.UUID,
        document_id: uuid.UUID,
        version_number: int,
        author_id: uuid.UUID,
        ops: Optional[List[Operation]] = None,
        is_snapshot: bool = False,
        snapshot_content: Optional[str] = None,
        message: str = "",
        change_summary: Optional[ChangeSummary] = None,
        delta_size: int = 0,
        created_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.document_id = document_id
        self.version_number = version_number
        self.author_id = author_id
        self.ops = ops
        self.is_snapshot = is_snapshot
        self.snapshot_content = snapshot_content
        self.message = message
        self.change_summary = change_summary or ChangeSummary()
        self.delta_size = delta_size
        self.created_at = created_at or utcnow()

    @property
    def payload_loaded(self) -> bool:
        return self.ops is not None

    def validate(self) -> None:
        """Проверка инвариантов записи перед сохранением"""
        if self.version_number < 1:
            raise HistoryIntegrityError(f"Invalid version number {self.version_number}")
        if self.is_snapshot:
            if self.snapshot_content is None or self.ops:
                raise HistoryIntegrityError(
                    f"Snapshot version {self.version_number} must carry content and no operations"
                )
        else:
            if self.snapshot_content is not None or not self.ops:
                raise HistoryIntegrityError(
                    f"Delta version {self.version_number} must carry operations and no content"
                )
        if self.version_number == 1 and not self.is_snapshot:
            raise HistoryIntegrityError("Version 1 must be a snapshot")

    @classmethod
    def create_snapshot(
        cls,
        document_id: uuid.UUID,
        version_number: int,
        content: str,
        author_id: uuid.UUID,
        message: str = "",
        change_summary: Optional[ChangeSummary] = None,
        delta_size: int = 0
    ) -> "DocumentVersion":
        """Создание версии-снимка с полным текстом"""
        return cls(
            uuid=uuid.uuid4(),
            document_id=document_id,
            version_number=version_number,
            author_id=author_id,
            ops=[],
            is_snapshot=True,
            snapshot_content=content,
            message=message,
            change_summary=change_summary,
            delta_size=delta_size
        )

    @classmethod
    def create_delta(
        cls,
        document_id: uuid.UUID,
        version_number: int,
        ops: List[Operation],
        author_id: uuid.UUID,
        message: str = "",
        change_summary: Optional[ChangeSummary] = None
    ) -> "DocumentVersion":
        """Создание версии-дельты"""
        return cls(
            uuid=uuid.uuid4(),
            document_id=document_id,
            version_number=version_number,
            author_id=author_id,
            ops=list(ops),
            is_snapshot=False,
            snapshot_content=None,
            message=message,
            change_summary=change_summary,
            delta_size=len(ops)
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, DocumentVersion):
            return False
        return self.uuid == other.uuid

    def __repr__(self) -> str:
        kind = "snapshot" if self.is_snapshot else "delta"
        return f"DocumentVersion(document_id={self.document_id}, version={self.version_number}, {kind})"

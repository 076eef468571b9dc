from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Literal, Union, Dict, Any
import uuid
from datetime import datetime

from deltadoc.domains.versions.entities import ChangeStats, DocumentVersion, Operation


class OperationSchema(BaseModel):
    """Операция дельты в формате хранения"""
    op: Literal["retain", "insert", "delete"]
    data: Union[int, str]
    position: int = 0

    @classmethod
    def from_entity(cls, operation: Operation) -> "OperationSchema":
        return cls(**operation.to_dict())


class ChangeStatsResponse(BaseModel):
    """Статистика изменений"""
    insertions: int
    deletions: int
    retentions: int
    lines_added: int
    lines_removed: int
    lines_modified: int
    character_delta: int
    total_ops: int

    @classmethod
    def from_entity(cls, stats: ChangeStats) -> "ChangeStatsResponse":
        return cls(**stats.to_dict())


class ChangeSummaryResponse(BaseModel):
    """Метаданные изменения версии"""
    summary: str
    insertions: int = 0
    deletions: int = 0
    retentions: int = 0
    lines_added: int
    lines_removed: int
    lines_modified: int
    character_delta: int
    total_ops: int = 0
    save_type: Literal["auto", "manual", "initial"]
    reverted_to: Optional[int] = None


class VersionCreate(BaseModel):
    """Схема для создания версии"""
    # Длины проверяет VersionManager по settings.max_content_length и max_message_length
    content: str
    message: Optional[str] = None
    save_type: Literal["auto", "manual"] = "manual"


class VersionRevertRequest(BaseModel):
    """Схема для возврата к версии"""
    message: Optional[str] = None


class VersionCleanupRequest(BaseModel):
    """Схема для очистки истории"""
    keep_versions: int = Field(50, ge=10, le=200)


class VersionResponse(BaseModel):
    """Метаданные версии; дельта и снимок только по запросу"""
    uuid: uuid.UUID
    document_id: uuid.UUID
    version_number: int
    is_snapshot: bool
    author_id: uuid.UUID
    message: str
    change_summary: ChangeSummaryResponse
    delta_size: int
    created_at: datetime
    ops: Optional[List[OperationSchema]] = None
    snapshot_content: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_entity(cls, version: DocumentVersion) -> "VersionResponse":
        return cls(
            uuid=version.uuid,
            document_id=version.document_id,
            version_number=version.version_number,
            is_snapshot=version.is_snapshot,
            author_id=version.author_id,
            message=version.message,
            change_summary=ChangeSummaryResponse(**version.change_summary.to_dict()),
            delta_size=version.delta_size,
            created_at=version.created_at,
            ops=(
                [OperationSchema.from_entity(op) for op in version.ops]
                if version.payload_loaded else None
            ),
            snapshot_content=version.snapshot_content
        )


class VersionCreateResponse(BaseModel):
    """Ответ на создание версии"""
    version: VersionResponse
    change_stats: ChangeStatsResponse
    is_snapshot: bool


class VersionDetailResponse(BaseModel):
    """Версия вместе с восстановленным текстом"""
    version: VersionResponse
    content: str
    change_stats: ChangeStatsResponse


class VersionListResponse(BaseModel):
    """Страница истории версий"""
    versions: List[VersionResponse]
    total: int
    current_version: int
    has_more: bool


class VersionRevertResponse(BaseModel):
    """Ответ на возврат к версии"""
    new_version: VersionResponse
    reverted_to_version: int
    content: str


class VersionCompareResponse(BaseModel):
    """Сравнение двух версий"""
    from_version: VersionResponse
    to_version: VersionResponse
    delta: List[OperationSchema]
    change_stats: ChangeStatsResponse
    summary: str
    from_content: str
    to_content: str


class VersionCleanupResponse(BaseModel):
    """Результат очистки истории"""
    deleted_count: int
    kept_versions: int


class VersionRepairResponse(BaseModel):
    """Результат восстановления корневого снимка"""
    repaired: bool
    message: str


class VersionDebugResponse(BaseModel):
    """Диагностика журнала версий"""
    debug_data: List[Dict[str, Any]]

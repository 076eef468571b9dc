from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from deltadoc.core.auth import get_current_user_id
from deltadoc.core.db import get_db
from deltadoc.domains.versions.schemas import (
    ChangeStatsResponse, OperationSchema, VersionCleanupRequest, VersionCleanupResponse,
    VersionCompareResponse, VersionCreate, VersionCreateResponse, VersionDebugResponse,
    VersionDetailResponse, VersionListResponse, VersionRepairResponse, VersionResponse,
    VersionRevertRequest, VersionRevertResponse
)
from deltadoc.domains.versions.services import VersionManager

router = APIRouter(prefix="/files/{file_id}/versions", tags=["versions"])


async def get_version_manager(db: AsyncSession = Depends(get_db)) -> VersionManager:
    """Зависимость: менеджер версий поверх сессии запроса"""
    return VersionManager.from_session(db)


@router.post("", response_model=VersionCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_version(
    file_id: uuid.UUID,
    version_data: VersionCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    manager: VersionManager = Depends(get_version_manager)
):
    """Создание новой версии файла"""
    result = await manager.create_version(
        file_id,
        owner_id=user_id,
        content=version_data.content,
        author_id=user_id,
        message=version_data.message,
        save_type=version_data.save_type
    )

    return VersionCreateResponse(
        version=VersionResponse.from_entity(result.version),
        change_stats=ChangeStatsResponse.from_entity(result.change_stats),
        is_snapshot=result.is_snapshot
    )


@router.get("", response_model=VersionListResponse)
async def list_versions(
    file_id: uuid.UUID,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    include_deltas: bool = Query(False),
    user_id: uuid.UUID = Depends(get_current_user_id),
    manager: VersionManager = Depends(get_version_manager)
):
    """История версий файла, новые первыми"""
    page = await manager.list_versions(
        file_id,
        owner_id=user_id,
        limit=limit,
        offset=offset,
        include_deltas=include_deltas
    )

    return VersionListResponse(
        versions=[VersionResponse.from_entity(v) for v in page.versions],
        total=page.total,
        current_version=page.current_version,
        has_more=page.has_more
    )


@router.post("/repair", response_model=VersionRepairResponse)
async def repair_history(
    file_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    manager: VersionManager = Depends(get_version_manager)
):
    """Восстановление повреждённого корневого снимка"""
    result = await manager.repair(file_id, owner_id=user_id, author_id=user_id)
    return VersionRepairResponse(repaired=result.repaired, message=result.message)


@router.get("/debug", response_model=VersionDebugResponse)
async def debug_history(
    file_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    manager: VersionManager = Depends(get_version_manager)
):
    """Диагностическая сводка журнала версий"""
    debug_data = await manager.history_debug(file_id, owner_id=user_id)
    return VersionDebugResponse(debug_data=debug_data)


# Должен быть объявлен до /{version_number}
@router.get("/compare", response_model=VersionCompareResponse)
async def compare_versions(
    file_id: uuid.UUID,
    from_version: int = Query(..., ge=1),
    to_version: int = Query(..., ge=1),
    user_id: uuid.UUID = Depends(get_current_user_id),
    manager: VersionManager = Depends(get_version_manager)
):
    """Сравнение двух версий"""
    comparison = await manager.compare(
        file_id,
        owner_id=user_id,
        from_version=from_version,
        to_version=to_version
    )

    return VersionCompareResponse(
        from_version=VersionResponse.from_entity(comparison.from_version),
        to_version=VersionResponse.from_entity(comparison.to_version),
        delta=[OperationSchema.from_entity(op) for op in comparison.delta],
        change_stats=ChangeStatsResponse.from_entity(comparison.change_stats),
        summary=comparison.summary,
        from_content=comparison.from_content,
        to_content=comparison.to_content
    )


@router.delete("/cleanup", response_model=VersionCleanupResponse)
async def cleanup_history(
    file_id: uuid.UUID,
    cleanup_data: Optional[VersionCleanupRequest] = None,
    user_id: uuid.UUID = Depends(get_current_user_id),
    manager: VersionManager = Depends(get_version_manager)
):
    """Удаление старых дельт с сохранением восстановимости"""
    cleanup_data = cleanup_data or VersionCleanupRequest()
    result = await manager.cleanup(file_id, owner_id=user_id, keep_versions=cleanup_data.keep_versions)
    return VersionCleanupResponse(deleted_count=result.deleted_count, kept_versions=result.kept_versions)


@router.get("/{version_number}", response_model=VersionDetailResponse)
async def get_version(
    file_id: uuid.UUID,
    version_number: int,
    user_id: uuid.UUID = Depends(get_current_user_id),
    manager: VersionManager = Depends(get_version_manager)
):
    """Получение версии с восстановленным содержимым"""
    result = await manager.get_version(file_id, owner_id=user_id, version_number=version_number)

    return VersionDetailResponse(
        version=VersionResponse.from_entity(result.version),
        content=result.content,
        change_stats=ChangeStatsResponse.from_entity(result.change_stats)
    )


@router.post("/{version_number}/revert", response_model=VersionRevertResponse)
async def revert_version(
    file_id: uuid.UUID,
    version_number: int,
    revert_data: Optional[VersionRevertRequest] = None,
    user_id: uuid.UUID = Depends(get_current_user_id),
    manager: VersionManager = Depends(get_version_manager)
):
    """Возврат к версии новым коммитом"""
    result = await manager.revert(
        file_id,
        owner_id=user_id,
        version_number=version_number,
        author_id=user_id,
        message=revert_data.message if revert_data else None
    )

    return VersionRevertResponse(
        new_version=VersionResponse.from_entity(result.new_version),
        reverted_to_version=result.reverted_to,
        content=result.content
    )

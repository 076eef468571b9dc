import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class FileLockRegistry:
    """Блокировки записи истории, по одной на файл.

    Блокировка живёт, пока её кто-то держит или ждёт, затем удаляется из
    реестра. Защищает только в пределах одного процесса; между процессами
    номер версии охраняет уникальный индекс в БД.
    """

    def __init__(self):
        self._locks: Dict[uuid.UUID, asyncio.Lock] = {}
        self._waiters: Dict[uuid.UUID, int] = {}

    @asynccontextmanager
    async def hold(self, file_id: uuid.UUID) -> AsyncIterator[None]:
        lock = self._locks.setdefault(file_id, asyncio.Lock())
        self._waiters[file_id] = self._waiters.get(file_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[file_id] -= 1
            if self._waiters[file_id] == 0:
                del self._waiters[file_id]
                del self._locks[file_id]

    def is_locked(self, file_id: uuid.UUID) -> bool:
        lock = self._locks.get(file_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


# Общий реестр процесса: менеджеры создаются на каждый запрос
file_locks = FileLockRegistry()

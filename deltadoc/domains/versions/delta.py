"""
Кодек дельт: нормализация списка операций, применение к тексту и статистика.

Курсор ``apply`` живёт в изменяемом результирующем тексте, а не в исходном:
``Retain`` сдвигает курсор, ``Insert`` вставляет текст и сдвигает курсор за
вставку, ``Delete`` удаляет символы под курсором, не сдвигая его. Всё, что
осталось после последней операции, сохраняется без изменений.
"""
from typing import Iterable, List, Optional

from deltadoc.core.exceptions import InvalidInputError
from deltadoc.domains.versions.entities import (
    ChangeStats, Delete, Insert, Operation, Retain
)


def optimize(ops: Iterable[Operation]) -> List[Operation]:
    """Слияние соседних операций одного типа и удаление пустых"""
    optimized: List[Operation] = []

    for op in ops:
        if op.is_empty():
            continue
        if optimized and optimized[-1].operation_type == op.operation_type:
            optimized[-1] = optimized[-1].merge(op)
        else:
            optimized.append(op)

    return optimized


def apply(base: Optional[str], ops: Iterable[Operation]) -> str:
    """Применение операций к базовому тексту.

    Текст собирается потоково: ``parts`` соответствует уже пройденной части
    результата, ``offset`` указывает на ещё не тронутый остаток ``base``.
    Это эквивалентно вставкам и удалениям в рабочей копии по курсору, но без
    квадратичного копирования строк.
    """
    base = base or ""
    parts: List[str] = []
    offset = 0

    for op in ops:
        if isinstance(op, Retain):
            end = offset + op.count
            if end > len(base):
                raise InvalidInputError(
                    f"Retain of {op.count} exceeds text length at offset {offset}"
                )
            parts.append(base[offset:end])
            offset = end
        elif isinstance(op, Insert):
            parts.append(op.text)
        elif isinstance(op, Delete):
            if offset + op.count > len(base):
                raise InvalidInputError(
                    f"Delete of {op.count} exceeds text length at offset {offset}"
                )
            offset += op.count
        else:
            raise InvalidInputError(f"Unknown operation: {op!r}")

    parts.append(base[offset:])
    return "".join(parts)


def calculate_change_stats(ops: Iterable[Operation], old_text: Optional[str] = None) -> ChangeStats:
    """Подсчёт статистики изменений.

    Удалённые строки считаются только если передан исходный текст: сама
    операция ``Delete`` хранит лишь количество символов.
    """
    stats = ChangeStats()
    cursor = 0

    for op in ops:
        stats.total_ops += 1
        if isinstance(op, Insert):
            stats.insertions += len(op.text)
            stats.lines_added += op.text.count("\n")
            stats.character_delta += len(op.text)
        elif isinstance(op, Delete):
            stats.deletions += op.count
            stats.character_delta -= op.count
            if old_text is not None:
                stats.lines_removed += old_text.count("\n", cursor, cursor + op.count)
            cursor += op.count
        elif isinstance(op, Retain):
            stats.retentions += op.count
            cursor += op.count

    return stats


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def generate_change_summary(stats: ChangeStats) -> str:
    """Человекочитаемое описание изменений, например ``+2 lines, -5 chars``"""
    if stats.insertions == 0 and stats.deletions == 0:
        return "No changes"

    parts = []

    if stats.lines_added > 0:
        parts.append(f"+{_plural(stats.lines_added, 'line')}")

    if stats.lines_removed > 0:
        parts.append(f"-{_plural(stats.lines_removed, 'line')}")

    if stats.insertions > 0 and stats.lines_added == 0:
        parts.append(f"+{_plural(stats.insertions, 'char')}")

    if stats.deletions > 0 and stats.lines_removed == 0:
        parts.append(f"-{_plural(stats.deletions, 'char')}")

    return ", ".join(parts) or "Content modified"

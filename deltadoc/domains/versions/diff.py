"""
Вычисление дельты между двумя текстами.

Жадный проход двумя курсорами: совпадающие участки превращаются в
``Retain``, при расхождении ищется ближайшая общая подстрока длиной
``min_match`` в пределах окна ``window`` и пропущенные участки становятся
``Delete``/``Insert``. Если совпадения в окне нет, вставляется один символ
нового текста, так что проход всегда завершается.

Результат не минимален, но ``apply(old, diff(old, new)) == new`` выполняется
всегда. Стоимость O(n * window^2) в худшем случае, поэтому размер входа
ограничивается вызывающей стороной.
"""
from typing import List, Optional, Tuple

from deltadoc.domains.versions.delta import optimize
from deltadoc.domains.versions.entities import Delete, Insert, Operation, Retain

DEFAULT_WINDOW = 50
DEFAULT_MIN_MATCH = 3


class DiffEngine:
    """Построитель дельт"""

    def __init__(self, window: int = DEFAULT_WINDOW, min_match: int = DEFAULT_MIN_MATCH):
        if min_match < 1:
            raise ValueError("min_match must be positive")
        if window < min_match:
            raise ValueError("window must not be smaller than min_match")
        self.window = window
        self.min_match = min_match

    def diff(self, old: Optional[str], new: Optional[str]) -> List[Operation]:
        """Список операций, превращающих ``old`` в ``new``"""
        old = old or ""
        new = new or ""

        if old == new:
            return []

        ops: List[Operation] = []
        i = j = 0
        old_len, new_len = len(old), len(new)

        while i < old_len or j < new_len:
            if i >= old_len:
                ops.append(Insert(new[j:], position=i))
                break

            if j >= new_len:
                ops.append(Delete(old_len - i, position=i))
                break

            if old[i] == new[j]:
                run = self._common_run(old, new, i, j)
                ops.append(Retain(run, position=i))
                i += run
                j += run
                continue

            match = self._find_next_match(old, new, i, j)
            if match is None:
                ops.append(Insert(new[j], position=i))
                j += 1
                continue

            match_old, match_new = match
            if match_old > i:
                ops.append(Delete(match_old - i, position=i))
            if match_new > j:
                ops.append(Insert(new[j:match_new], position=match_old))
            i, j = match_old, match_new

        return optimize(ops)

    @staticmethod
    def _common_run(old: str, new: str, i: int, j: int) -> int:
        """Длина общего участка, начинающегося с ``old[i]`` и ``new[j]``.

        Сравнение блоками удваивающейся длины, чтобы длинные неизменённые
        участки не проходились посимвольно.
        """
        limit = min(len(old) - i, len(new) - j)
        run = 0
        step = 1

        while run < limit:
            size = min(step, limit - run)
            if old[i + run:i + run + size] == new[j + run:j + run + size]:
                run += size
                step *= 2
            elif size == 1:
                break
            else:
                step = size // 2

        return run

    def _find_next_match(self, old: str, new: str, i: int, j: int) -> Optional[Tuple[int, int]]:
        """Первая подстрока длины ``min_match`` из окна ``old``, найденная в окне ``new``"""
        size = self.min_match
        last_old_start = min(len(old) - size, i + self.window)
        new_end = min(len(new), j + self.window + size)

        for start in range(i, last_old_start + 1):
            found = new.find(old[start:start + size], j, new_end)
            if found != -1:
                return start, found

        return None


_default_engine = DiffEngine()


def diff(old: Optional[str], new: Optional[str]) -> List[Operation]:
    """Дельта с параметрами по умолчанию"""
    return _default_engine.diff(old, new)

"""
Ошибки движка истории версий.

Каждая ошибка несёт ``kind`` (машиночитаемый тип) и ``status_code``, по
которым HTTP-слой формирует ответ ``{"error": kind, "message": ...}``.
"""


class VersionHistoryError(Exception):
    """Базовая ошибка истории версий"""

    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class NotFoundError(VersionHistoryError):
    """Файл или версия не найдены, либо нет доступа"""

    kind = "not_found"
    status_code = 404


class InvalidInputError(VersionHistoryError):
    """Некорректные входные данные"""

    kind = "invalid_input"
    status_code = 400


class HistoryIntegrityError(VersionHistoryError):
    """Цепочка версий повреждена (нет корневого снимка, разрыв дельт)"""

    kind = "integrity_error"
    status_code = 409


class VersionConflictError(VersionHistoryError):
    """Номер версии уже занят параллельной записью"""

    kind = "conflict"
    status_code = 409


class InternalError(VersionHistoryError):
    """Непредвиденная ошибка хранилища"""

    kind = "internal_error"
    status_code = 500

"""Ошибки хранилища групп. Каждая знает свой HTTP-статус; обработчик в main.py отдаёт {"detail": ...}."""


class GroupShelfError(Exception):
    status_code = 500
    default_detail = "internal error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationFault(GroupShelfError):
    """Неверный или отсутствующий ввод, неподдерживаемый тип файла."""
    status_code = 400
    default_detail = "invalid request"


class EmptyGroup(ValidationFault):
    default_detail = "group has no files"


class NotFound(GroupShelfError):
    status_code = 404
    default_detail = "not found"


class GroupNotFound(NotFound):
    default_detail = "group not found"


class FileNotFound(NotFound):
    default_detail = "file not found"


class Forbidden(GroupShelfError):
    """Параметр пути выходит за пределы своего каталога."""
    status_code = 403
    default_detail = "access denied"


class StorageFault(GroupShelfError):
    """Сбой файловой системы при записи/удалении."""
    status_code = 500
    default_detail = "storage failure"

"""Галерея на клиенте: состояние просмотра группы и навигация по её изображениям.

GallerySession неизменяемо, переходы являются чистыми функциями (состояние, событие) → состояние.
Режим галереи активен, только если в группе два изображения и больше.
GallerySessionController применяет переходы к представлению: при навигации меняются только
картинка, заголовок, счётчик и доступность кнопок, представление целиком не перестраивается.
"""
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Protocol

from groupshelf.schemas import FileRecord, Group
from groupshelf.services.groups_client import GroupsApiError, GroupsClient, UploadItem

logger = logging.getLogger(__name__)

MIN_GALLERY_IMAGES = 2
KEY_PREVIOUS = "ArrowLeft"
KEY_NEXT = "ArrowRight"
KEY_ESCAPE = "Escape"


@dataclass(frozen=True)
class GallerySession:
    group_id: str | None = None
    current: str | None = None  # storage_name открытого файла
    images: tuple[FileRecord, ...] = ()
    index: int = -1

    @property
    def active(self) -> bool:
        return len(self.images) >= MIN_GALLERY_IMAGES and 0 <= self.index < len(self.images)

    @property
    def current_image(self) -> FileRecord | None:
        return self.images[self.index] if self.active else None

    @property
    def has_previous(self) -> bool:
        return self.active and self.index > 0

    @property
    def has_next(self) -> bool:
        return self.active and self.index < len(self.images) - 1


INACTIVE = GallerySession()


def image_records(group: Group) -> tuple[FileRecord, ...]:
    return tuple(f for f in group.files if f.kind == "image")


def _record(group: Group, storage_name: str | None) -> FileRecord | None:
    if storage_name is None:
        return None
    return next((f for f in group.files if f.storage_name == storage_name), None)


def enter_group(group: Group) -> GallerySession:
    """Группа открыта, файл ещё не выбран."""
    return GallerySession(group_id=group.id)


def open_file(session: GallerySession, group: Group, storage_name: str) -> GallerySession:
    record = _record(group, storage_name)
    if record is None:
        return session
    images = image_records(group)
    if record.kind != "image" or len(images) < MIN_GALLERY_IMAGES:
        return GallerySession(group_id=group.id, current=record.storage_name)
    index = next((i for i, f in enumerate(images) if f.storage_name == storage_name), 0)
    return GallerySession(group_id=group.id, current=record.storage_name, images=images, index=index)


def leave(session: GallerySession) -> GallerySession:
    return INACTIVE


def _step(session: GallerySession, delta: int) -> GallerySession:
    if not session.active:
        return session
    index = session.index + delta
    if index < 0 or index >= len(session.images):
        return session
    return replace(session, index=index, current=session.images[index].storage_name)


def next_image(session: GallerySession) -> GallerySession:
    return _step(session, 1)


def previous_image(session: GallerySession) -> GallerySession:
    return _step(session, -1)


def refresh(session: GallerySession, group: Group) -> GallerySession:
    """
    Новый снимок группы после добавления/удаления файлов: список изображений строится заново,
    позиция ищется по отображаемому имени; если показанное изображение удалено, то первое.
    Снимок другой группы (запоздавший ответ) игнорируется.
    """
    if session.group_id != group.id:
        return session
    previous = session.current_image
    current = _record(group, session.current)
    viewing_image = previous is not None or (current is not None and current.kind == "image")
    images = image_records(group)
    if not viewing_image or len(images) < MIN_GALLERY_IMAGES:
        return GallerySession(group_id=group.id, current=current.storage_name if current else None)
    display_name = previous.display_name if previous else current.display_name
    index = next((i for i, f in enumerate(images) if f.display_name == display_name), 0)
    return GallerySession(
        group_id=group.id, current=images[index].storage_name, images=images, index=index
    )


class GalleryView(Protocol):
    def render_file(self, group: Group, record: FileRecord | None, url: str | None) -> None:
        """Полная отрисовка области просмотра (вход в файл, выход из галереи)."""

    def show_image(self, url: str, title: str) -> None: ...

    def show_position(self, position: int, total: int) -> None: ...

    def set_navigation(self, has_previous: bool, has_next: bool) -> None: ...

    def set_loading(self, loading: bool) -> None: ...


class KeyboardBinding(Protocol):
    def bind(self, handler: Callable[[str], bool]) -> None: ...

    def unbind(self, handler: Callable[[str], bool]) -> None: ...


class GallerySessionController:
    def __init__(
        self,
        client: GroupsClient,
        view: GalleryView,
        keyboard: KeyboardBinding,
        notify: Callable[[str], None] | None = None,
    ) -> None:
        self.client = client
        self.view = view
        self.keyboard = keyboard
        self.notify = notify or (lambda message: None)
        self.session = INACTIVE
        self.group: Group | None = None
        self.busy = False
        self._keys_bound = False

    @property
    def active(self) -> bool:
        return self.session.active

    # --- keyboard ---

    def _sync_keyboard(self) -> None:
        # обработчик клавиш может быть зарегистрирован только один раз
        if self.session.active and not self._keys_bound:
            self.keyboard.bind(self.handle_key)
            self._keys_bound = True
        elif not self.session.active and self._keys_bound:
            self.keyboard.unbind(self.handle_key)
            self._keys_bound = False

    def handle_key(self, key: str) -> bool:
        """True, если клавиша обработана и дальше не передаётся."""
        if not self.session.active:
            return False
        if key == KEY_PREVIOUS:
            self.previous()
            return True
        if key == KEY_NEXT:
            self.next()
            return True
        return key == KEY_ESCAPE

    # --- view ---

    def _url(self, record: FileRecord) -> str:
        return self.client.file_url(self.group.id, record.storage_name)

    def _update_gallery(self) -> None:
        image = self.session.current_image
        self.view.show_image(self._url(image), image.display_name)
        self.view.show_position(self.session.index + 1, len(self.session.images))
        self.view.set_navigation(self.session.has_previous, self.session.has_next)

    def _render_current(self) -> None:
        record = _record(self.group, self.session.current)
        self.view.render_file(self.group, record, self._url(record) if record else None)

    def _apply(self, new: GallerySession) -> None:
        old, self.session = self.session, new
        if new.active and old.active and old.group_id == new.group_id:
            if old.index != new.index or old.images != new.images:
                self._update_gallery()
        elif new.active:
            self._render_current()
            self._update_gallery()
        elif old.active or old.current != new.current:
            self._render_current()
        self._sync_keyboard()

    # --- navigation ---

    def show_group(self, group: Group) -> None:
        self.group = group
        self._apply(enter_group(group))

    def open_file(self, storage_name: str) -> None:
        if self.group is None:
            return
        self._apply(open_file(self.session, self.group, storage_name))

    def next(self) -> bool:
        new = next_image(self.session)
        if new is self.session:
            return False
        self._apply(new)
        return True

    def previous(self) -> bool:
        new = previous_image(self.session)
        if new is self.session:
            return False
        self._apply(new)
        return True

    def leave(self) -> None:
        self.group = None
        self.session = leave(self.session)
        self._sync_keyboard()

    def apply_snapshot(self, group: Group) -> bool:
        """Новый снимок группы от сервера. Ответ по другой группе (устаревший) игнорируется."""
        if self.group is None or group.id != self.group.id:
            return False
        self.group = group
        self._apply(refresh(self.session, group))
        return True

    # --- mutations ---

    async def _mutate(self, call: Callable[[], Awaitable[Group]]) -> Group | None:
        if self.busy or self.group is None:
            return None
        self.busy = True
        self.view.set_loading(True)
        try:
            group = await call()
        except GroupsApiError as e:
            # локальное состояние не трогаем
            logger.warning("Изменение группы не удалось: %s", e)
            self.notify(e.detail)
            return None
        finally:
            self.busy = False
            self.view.set_loading(False)
        self.apply_snapshot(group)
        return group

    async def add_files(self, files: list[UploadItem]) -> Group | None:
        group_id = self.group.id if self.group else None
        return await self._mutate(lambda: self.client.add_files(group_id, files))

    async def remove_file(self, storage_name: str) -> Group | None:
        group_id = self.group.id if self.group else None
        return await self._mutate(lambda: self.client.remove_file(group_id, storage_name))

    async def rename_file(self, storage_name: str, display_name: str) -> Group | None:
        group_id = self.group.id if self.group else None
        return await self._mutate(lambda: self.client.rename_file(group_id, storage_name, display_name))

    async def rename_group(self, name: str) -> Group | None:
        group_id = self.group.id if self.group else None
        return await self._mutate(lambda: self.client.rename_group(group_id, name))

    async def complete_group(self, name: str | None = None) -> Group | None:
        group_id = self.group.id if self.group else None
        return await self._mutate(lambda: self.client.complete_group(group_id, name))

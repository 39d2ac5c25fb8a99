"""HTTP-клиент API групп для клиентской стороны (просмотрщик, галерея)."""
import logging
from urllib.parse import quote

import httpx

from groupshelf.schemas import Group, GroupSummary

_log = logging.getLogger(__name__)

UploadItem = tuple[str, bytes, str]  # (имя файла, содержимое, content-type)


class GroupsApiError(Exception):
    """Ответ API не 2xx (status_code=0: запрос не дошёл до сервера)."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")


class GroupsClient:
    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout

    @staticmethod
    def file_url(group_id: str, storage_name: str) -> str:
        return f"/api/groups/{quote(group_id)}/files/{quote(storage_name)}"

    @staticmethod
    def thumbnail_url(group_id: str, thumb_name: str) -> str:
        return f"/api/groups/{quote(group_id)}/thumbnails/{quote(thumb_name)}"

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, transport=self._transport, timeout=self._timeout
            ) as client:
                r = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            _log.warning("groups api request failed: path=%s method=%s error=%s", path, method, e)
            raise GroupsApiError(0, str(e)) from e
        if r.status_code >= 400:
            try:
                detail = r.json().get("detail") or r.text
            except ValueError:
                detail = r.text
            raise GroupsApiError(r.status_code, str(detail))
        return r

    async def _group_call(self, method: str, path: str, **kwargs) -> Group:
        r = await self._request(method, path, **kwargs)
        return Group.model_validate(r.json()["group"])

    async def create_group(self, name: str | None = None) -> Group:
        return await self._group_call("POST", "/api/groups", json={"name": name})

    async def list_groups(self) -> list[GroupSummary]:
        r = await self._request("GET", "/api/groups")
        return [GroupSummary.model_validate(item) for item in r.json()]

    async def get_group(self, group_id: str) -> Group:
        r = await self._request("GET", f"/api/groups/{quote(group_id)}")
        return Group.model_validate(r.json())

    async def add_files(self, group_id: str, files: list[UploadItem]) -> Group:
        multipart = [("files", item) for item in files]
        return await self._group_call("POST", f"/api/groups/{quote(group_id)}/files", files=multipart)

    async def remove_file(self, group_id: str, storage_name: str) -> Group:
        return await self._group_call("DELETE", self.file_url(group_id, storage_name))

    async def rename_file(self, group_id: str, storage_name: str, display_name: str) -> Group:
        return await self._group_call(
            "PUT", f"{self.file_url(group_id, storage_name)}/name", json={"display_name": display_name}
        )

    async def rename_group(self, group_id: str, name: str) -> Group:
        return await self._group_call("PUT", f"/api/groups/{quote(group_id)}/name", json={"name": name})

    async def complete_group(self, group_id: str, name: str | None = None) -> Group:
        return await self._group_call("PUT", f"/api/groups/{quote(group_id)}/complete", json={"name": name})

    async def delete_group(self, group_id: str) -> None:
        await self._request("DELETE", f"/api/groups/{quote(group_id)}")

    async def get_document(self, group_id: str, storage_name: str) -> dict:
        r = await self._request("GET", self.file_url(group_id, storage_name))
        return r.json()

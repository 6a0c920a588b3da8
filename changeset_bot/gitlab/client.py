"""
GitLab API 客户端（外部系统连接器）。

约定：
- 这里只做“HTTP 调用 + 错误处理 + schema 校验”，不做业务决策。
- 发生错误时**直接抛错**（`GitLabAPIError`），不要吞异常；
  异常上带着原始 request/response，便于上游打印诊断信息。
"""

from __future__ import annotations

import logging
from typing import Literal
from urllib.parse import quote

import httpx

from changeset_bot.gitlab.schemas import GitLabDiscussion
from changeset_bot.gitlab.schemas import GitLabMergeRequestChanges
from changeset_bot.gitlab.schemas import GitLabNote
from changeset_bot.gitlab.schemas import GitLabTreeItem
from changeset_bot.gitlab.schemas import GitLabUser

logger = logging.getLogger(__name__)

TokenType = Literal["personal", "job", "oauth"]

PER_PAGE = 100


class GitLabAPIError(RuntimeError):
    """GitLab 返回 4xx/5xx 时抛出，携带结构化诊断数据。"""

    def __init__(self, description: str, request: httpx.Request, response: httpx.Response) -> None:
        super().__init__(f"GitLab API error {response.status_code}: {description}")
        self.description = description
        self.request = request
        self.response = response


class GitLabClient:
    """changeset bot 用到的最小 GitLab v4 API client。"""

    def __init__(
        self,
        base_url: str,
        token: str,
        http_client: httpx.AsyncClient,
        token_type: TokenType = "personal",
    ) -> None:
        """
        - base_url: GitLab 实例地址（不包含末尾 /）
        - token: 访问令牌（建议用专用机器人账号 / project access token）
        - http_client: 复用的 httpx.AsyncClient
        - token_type: personal -> PRIVATE-TOKEN，job -> JOB-TOKEN，oauth -> Bearer
        """
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._token_type = token_type
        self._http_client = http_client
        self._current_user: GitLabUser | None = None

    def _headers(self) -> dict[str, str]:
        """GitLab API 鉴权头。"""
        if self._token_type == "job":
            return {"JOB-TOKEN": self._token}
        if self._token_type == "oauth":
            return {"Authorization": f"Bearer {self._token}"}
        return {"PRIVATE-TOKEN": self._token}

    def _url(self, path: str) -> str:
        return f"{self._base_url}/api/v4{path}"

    def _mr_url(self, project_id: int, mr_iid: int, suffix: str) -> str:
        return self._url(f"/projects/{project_id}/merge_requests/{mr_iid}{suffix}")

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        try:
            payload = response.json()
        except ValueError:
            payload = None
        description = response.text
        if isinstance(payload, dict):
            message = payload.get("message") or payload.get("error")
            if message is not None:
                description = str(message)
        raise GitLabAPIError(description=description, request=response.request, response=response)

    async def _request(self, method: str, url: str, **kwargs: object) -> httpx.Response:
        logger.debug(f"GitLab request: {method} {url}")
        response = await self._http_client.request(method, url, headers=self._headers(), **kwargs)
        self._raise_for_status(response)
        return response

    async def _get_all_pages(self, url: str, params: dict[str, object] | None = None) -> list[object]:
        """
        拉取分页接口的全部数据。

        注意：GitLab 列表接口默认 20 条/页；这里固定 per_page=100，
        某页不足 per_page 即视为最后一页。
        """
        page = 1
        items: list[object] = []
        while True:
            query: dict[str, object] = dict(params or {})
            query.update({"per_page": PER_PAGE, "page": page})
            response = await self._request("GET", url, params=query)
            data = response.json()
            if not isinstance(data, list):
                raise RuntimeError(f"Unexpected GitLab response shape for {url}: {data}")
            items.extend(data)
            if len(data) < PER_PAGE:
                break
            page += 1
        return items

    async def get_current_user(self) -> GitLabUser:
        """
        当前 token 对应的账号（GET /user）。

        同一个 client 内只请求一次：一次 CI job 只会有一个身份。
        """
        if self._current_user is None:
            response = await self._request("GET", self._url("/user"))
            self._current_user = GitLabUser.model_validate(response.json())
        return self._current_user

    async def list_merge_request_discussions(self, project_id: int, mr_iid: int) -> list[GitLabDiscussion]:
        data = await self._get_all_pages(self._mr_url(project_id, mr_iid, "/discussions"))
        return [GitLabDiscussion.model_validate(x) for x in data]

    async def list_merge_request_notes(self, project_id: int, mr_iid: int) -> list[GitLabNote]:
        data = await self._get_all_pages(self._mr_url(project_id, mr_iid, "/notes"))
        return [GitLabNote.model_validate(x) for x in data]

    async def create_merge_request_discussion(self, project_id: int, mr_iid: int, body: str) -> GitLabDiscussion:
        url = self._mr_url(project_id, mr_iid, "/discussions")
        response = await self._request("POST", url, json={"body": body})
        return GitLabDiscussion.model_validate(response.json())

    async def edit_merge_request_discussion_note(
        self,
        project_id: int,
        mr_iid: int,
        discussion_id: str,
        note_id: int,
        body: str,
    ) -> GitLabNote:
        url = self._mr_url(project_id, mr_iid, f"/discussions/{discussion_id}/notes/{note_id}")
        response = await self._request("PUT", url, json={"body": body})
        return GitLabNote.model_validate(response.json())

    async def create_merge_request_note(self, project_id: int, mr_iid: int, body: str) -> GitLabNote:
        """在 MR 下发布一条全局评论（note）。"""
        url = self._mr_url(project_id, mr_iid, "/notes")
        response = await self._request("POST", url, json={"body": body})
        return GitLabNote.model_validate(response.json())

    async def edit_merge_request_note(self, project_id: int, mr_iid: int, note_id: int, body: str) -> GitLabNote:
        url = self._mr_url(project_id, mr_iid, f"/notes/{note_id}")
        response = await self._request("PUT", url, json={"body": body})
        return GitLabNote.model_validate(response.json())

    async def get_merge_request_changes(self, project_id: int, mr_iid: int) -> GitLabMergeRequestChanges:
        """
        获取 MR changes。

        说明：
        - GitLab v4 API: GET /projects/:id/merge_requests/:iid/changes
        - 返回用 Pydantic 校验为 `GitLabMergeRequestChanges`
        """
        response = await self._request("GET", self._mr_url(project_id, mr_iid, "/changes"))
        return GitLabMergeRequestChanges.model_validate(response.json())

    async def list_repository_tree(self, project_id: int, ref: str) -> list[GitLabTreeItem]:
        url = self._url(f"/projects/{project_id}/repository/tree")
        data = await self._get_all_pages(url, params={"recursive": "true", "ref": ref})
        return [GitLabTreeItem.model_validate(x) for x in data]

    async def get_raw_file(self, project_id: int, file_path: str, ref: str) -> str:
        encoded = quote(file_path, safe="")
        url = self._url(f"/projects/{project_id}/repository/files/{encoded}/raw")
        response = await self._request("GET", url, params={"ref": ref})
        return response.text

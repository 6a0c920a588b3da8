from __future__ import annotations

import json
import re

import httpx
import pytest
import pytest_asyncio

from changeset_bot.comment.models import MergeRequestRef
from changeset_bot.gitlab.client import GitLabClient

PROJECT_ID = 7
MR_IID = 3
BOT_USERNAME = "project_7_bot"

_MR_PREFIX = f"/api/v4/projects/{PROJECT_ID}/merge_requests/{MR_IID}"
_REPO_PREFIX = f"/api/v4/projects/{PROJECT_ID}/repository"


class FakeGitLab:
    """内存版 GitLab（httpx.MockTransport handler），记录所有请求。"""

    def __init__(self, username: str = BOT_USERNAME) -> None:
        self.username = username
        self.notes: list[dict[str, object]] = []
        self.discussions: list[dict[str, object]] = []
        self.changes: list[dict[str, object]] = []
        self.files: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        self.error_status: dict[tuple[str, str], int] = {}
        self._next_id = 1000

    def mr_path(self, suffix: str = "") -> str:
        return f"{_MR_PREFIX}{suffix}"

    def count(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)

    @property
    def writes(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method in ("POST", "PUT")]

    def add_note(self, body: str, username: str | None = None) -> dict[str, object]:
        note = self._note(body, username or self.username)
        self.notes.append(note)
        return note

    def add_discussion(self, notes: list[dict[str, object]], discussion_id: str = "d1") -> dict[str, object]:
        discussion: dict[str, object] = {"id": discussion_id, "individual_note": False, "notes": notes}
        self.discussions.append(discussion)
        return discussion

    def add_change(self, path: str, new_file: bool = False) -> None:
        self.changes.append({"old_path": path, "new_path": path, "new_file": new_file})

    def _note(self, body: str, username: str) -> dict[str, object]:
        self._next_id += 1
        return {"id": self._next_id, "body": body, "author": {"username": username}, "noteable_type": "MergeRequest"}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method = request.method
        path = request.url.path

        status = self.error_status.get((method, path))
        if status is not None:
            return httpx.Response(status, json={"message": f"{status} Forbidden"})

        if method == "GET" and path == "/api/v4/user":
            return httpx.Response(200, json={"id": 1, "username": self.username})
        if path == f"{_MR_PREFIX}/changes":
            return httpx.Response(200, json={"changes": self.changes})
        if path == f"{_MR_PREFIX}/notes":
            if method == "GET":
                return httpx.Response(200, json=self._page(request, self.notes))
            return httpx.Response(201, json=self.add_note(json.loads(request.content)["body"]))
        if path == f"{_MR_PREFIX}/discussions":
            if method == "GET":
                return httpx.Response(200, json=self._page(request, self.discussions))
            note = self._note(json.loads(request.content)["body"], self.username)
            return httpx.Response(201, json=self.add_discussion([note], discussion_id=f"d{note['id']}"))

        match = re.fullmatch(rf"{_MR_PREFIX}(?:/discussions/(\w+))?/notes/(\d+)", path)
        if match and method == "PUT":
            body = json.loads(request.content)["body"]
            note = {"id": int(match.group(2)), "body": body, "author": {"username": self.username}}
            return httpx.Response(200, json=note)

        if path == f"{_REPO_PREFIX}/tree":
            items = [
                {"id": str(i), "name": p.rsplit("/", 1)[-1], "type": "blob", "path": p, "mode": "100644"}
                for i, p in enumerate(sorted(self.files))
            ]
            return httpx.Response(200, json=self._page(request, items))
        match = re.fullmatch(rf"{_REPO_PREFIX}/files/(.+)/raw", path)
        if match and method == "GET":
            content = self.files.get(match.group(1))
            if content is None:
                return httpx.Response(404, json={"message": "404 File Not Found"})
            return httpx.Response(200, text=content)

        return httpx.Response(404, json={"message": "404 Not Found"})

    @staticmethod
    def _page(request: httpx.Request, items: list[dict[str, object]]) -> list[dict[str, object]]:
        page = int(request.url.params.get("page", "1"))
        per_page = int(request.url.params.get("per_page", "20"))
        start = (page - 1) * per_page
        return items[start : start + per_page]


@pytest.fixture
def fake_gitlab() -> FakeGitLab:
    return FakeGitLab()


@pytest.fixture
def mr() -> MergeRequestRef:
    return MergeRequestRef(project_id=PROJECT_ID, mr_iid=MR_IID)


@pytest_asyncio.fixture
async def gitlab_client(fake_gitlab: FakeGitLab):
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_gitlab.handler)) as http_client:
        yield GitLabClient(base_url="https://gitlab.example.com", token="t", http_client=http_client)

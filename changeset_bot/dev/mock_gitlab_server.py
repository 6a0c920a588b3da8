"""
本地 Mock GitLab API server（只覆盖 changeset bot 用到的接口）。

用途：
- 在没有真实 GitLab 的情况下，本地跑通：
  /user -> list discussions/notes -> MR changes -> repository tree/raw -> create/edit comment

启动：
  python -m changeset_bot.dev.mock_gitlab_server

然后：
  GITLAB_HOST=http://127.0.0.1:9002 GITLAB_TOKEN=dev CI_PROJECT_ID=1 CI_MERGE_REQUEST_IID=1 \\
  CI_MERGE_REQUEST_SOURCE_BRANCH_NAME=feature CI_MERGE_REQUEST_PROJECT_URL=http://127.0.0.1:9002/group/repo \\
  changeset-bot comment
"""

from __future__ import annotations

import itertools
import time
import uuid

import uvicorn
from fastapi import FastAPI
from fastapi import HTTPException
from fastapi import Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

BOT_USERNAME = "project_1_bot"


class NoteBodyRequest(BaseModel):
    body: str


def _default_files() -> dict[str, str]:
    return {
        "package.json": '{"private": true, "workspaces": ["packages/*"]}',
        "packages/core/package.json": '{"name": "@demo/core", "version": "1.0.0"}',
        "packages/core/src/index.ts": "export const answer = 42\n",
        "packages/cli/package.json": '{"name": "@demo/cli", "version": "1.0.0"}',
        ".changeset/README.md": "# Changesets\n",
        ".changeset/brave-owls-dance.md": '---\n"@demo/core": minor\n---\n\nAdd answer\n',
    }


def _default_changes_response() -> dict[str, object]:
    return {
        "changes": [
            {
                "old_path": "packages/core/src/index.ts",
                "new_path": "packages/core/src/index.ts",
                "new_file": False,
                "renamed_file": False,
                "deleted_file": False,
                "diff": "@@ -0,0 +1 @@\n+export const answer = 42\n",
            },
            {
                "old_path": ".changeset/brave-owls-dance.md",
                "new_path": ".changeset/brave-owls-dance.md",
                "new_file": True,
                "renamed_file": False,
                "deleted_file": False,
                "diff": "",
            },
        ],
    }


app = FastAPI(title="Mock GitLab API", version="0.1.0")

_files: dict[str, str] = _default_files()
_notes: list[dict[str, object]] = []
_discussions: list[dict[str, object]] = []
_note_ids = itertools.count(1)


def _new_note(body: str) -> dict[str, object]:
    return {
        "id": next(_note_ids),
        "body": body,
        "author": {"username": BOT_USERNAME},
        "noteable_type": "MergeRequest",
        "created_at": int(time.time()),
    }


def _page(items: list[dict[str, object]], page: int, per_page: int) -> list[dict[str, object]]:
    start = (page - 1) * per_page
    return items[start : start + per_page]


@app.get("/api/v4/user")
async def get_current_user() -> dict[str, object]:
    return {"id": 1, "username": BOT_USERNAME}


@app.get("/api/v4/projects/{project_id}/merge_requests/{mr_iid}/changes")
async def get_merge_request_changes(project_id: int, mr_iid: int) -> dict[str, object]:
    _ = project_id
    _ = mr_iid
    return _default_changes_response()


@app.get("/api/v4/projects/{project_id}/merge_requests/{mr_iid}/notes")
async def list_merge_request_notes(
    project_id: int, mr_iid: int, page: int = 1, per_page: int = 20
) -> list[dict[str, object]]:
    return _page(_notes, page=page, per_page=per_page)


@app.post("/api/v4/projects/{project_id}/merge_requests/{mr_iid}/notes")
async def create_merge_request_note(project_id: int, mr_iid: int, req: NoteBodyRequest) -> dict[str, object]:
    note = _new_note(req.body)
    _notes.append(note)
    return note


@app.put("/api/v4/projects/{project_id}/merge_requests/{mr_iid}/notes/{note_id}")
async def edit_merge_request_note(project_id: int, mr_iid: int, note_id: int, req: NoteBodyRequest) -> dict[str, object]:
    for note in _notes:
        if note["id"] == note_id:
            note["body"] = req.body
            return note
    raise HTTPException(status_code=404, detail="404 Note Not Found")


@app.get("/api/v4/projects/{project_id}/merge_requests/{mr_iid}/discussions")
async def list_merge_request_discussions(
    project_id: int, mr_iid: int, page: int = 1, per_page: int = 20
) -> list[dict[str, object]]:
    return _page(_discussions, page=page, per_page=per_page)


@app.post("/api/v4/projects/{project_id}/merge_requests/{mr_iid}/discussions")
async def create_merge_request_discussion(project_id: int, mr_iid: int, req: NoteBodyRequest) -> dict[str, object]:
    discussion: dict[str, object] = {"id": uuid.uuid4().hex, "individual_note": False, "notes": [_new_note(req.body)]}
    _discussions.append(discussion)
    return discussion


@app.put("/api/v4/projects/{project_id}/merge_requests/{mr_iid}/discussions/{discussion_id}/notes/{note_id}")
async def edit_merge_request_discussion_note(
    project_id: int, mr_iid: int, discussion_id: str, note_id: int, req: NoteBodyRequest
) -> dict[str, object]:
    for discussion in _discussions:
        if discussion["id"] != discussion_id:
            continue
        for note in discussion["notes"]:  # type: ignore[attr-defined]
            if note["id"] == note_id:
                note["body"] = req.body
                return note
    raise HTTPException(status_code=404, detail="404 Note Not Found")


@app.get("/api/v4/projects/{project_id}/repository/tree")
async def list_repository_tree(
    project_id: int,
    ref: str = Query(default="main"),
    recursive: bool = False,
    page: int = 1,
    per_page: int = 20,
) -> list[dict[str, object]]:
    _ = ref
    items: list[dict[str, object]] = [
        {"id": uuid.uuid5(uuid.NAMESPACE_URL, path).hex, "name": path.rsplit("/", 1)[-1], "type": "blob", "path": path, "mode": "100644"}
        for path in sorted(_files)
        if recursive or "/" not in path
    ]
    return _page(items, page=page, per_page=per_page)


@app.get("/api/v4/projects/{project_id}/repository/files/{file_path:path}/raw", response_class=PlainTextResponse)
async def get_raw_file(project_id: int, file_path: str, ref: str = Query(default="main")) -> str:
    _ = ref
    if file_path not in _files:
        raise HTTPException(status_code=404, detail="404 File Not Found")
    return _files[file_path]


@app.get("/__debug__/comments")
async def debug_comments() -> dict[str, object]:
    return {"notes": _notes, "discussions": _discussions}


def main() -> None:
    uvicorn.run(app, host="127.0.0.1", port=9002)


if __name__ == "__main__":
    main()

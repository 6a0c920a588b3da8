"""
GitLab API response schemas（Pydantic）。

为什么要单独放 schema：
- GitLab 的 payload 结构复杂，直接用 dict 容易写错 key
- schema 校验失败会立刻暴露问题（比“默默 None”安全）

说明：
- 这里的字段只覆盖 changeset bot 所需子集，多余字段直接忽略
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class GitLabUser(BaseModel):
    """note author / 当前用户（只取 username）。"""

    username: str


class GitLabNote(BaseModel):
    """MR note（/notes 列表项，也是 discussion 内嵌的 note）。"""

    id: int
    body: str
    author: GitLabUser
    noteable_type: str | None = None


class GitLabDiscussion(BaseModel):
    """MR discussion（thread），notes 可能缺失。"""

    id: str
    individual_note: bool = False
    notes: list[GitLabNote] | None = None


class GitLabDiffRef(BaseModel):
    """GitLab 返回的 diff refs。"""

    base_sha: str
    head_sha: str
    start_sha: str


class GitLabMRChange(BaseModel):
    """单个文件变更。"""

    old_path: str
    new_path: str
    a_mode: str | None = None
    b_mode: str | None = None
    new_file: bool
    renamed_file: bool = False
    deleted_file: bool = False
    diff: str = ""


class GitLabMergeRequestChanges(BaseModel):
    """MR changes API 返回结构（changes + diff_refs）。"""

    changes: list[GitLabMRChange]
    diff_refs: GitLabDiffRef | None = None


class GitLabTreeItem(BaseModel):
    """repository tree 列表项。"""

    id: str
    name: str
    type: Literal["tree", "blob", "commit"]
    path: str
    mode: str

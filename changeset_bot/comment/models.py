"""
Comment 领域模型（Pydantic）。

用途：
- MR 定位（project + iid）
- 评论形态（discussion / note）
- 已存在 bot 评论的句柄（用于原地编辑）
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class MergeRequestRef(BaseModel):
    """一次 CI 运行对应的 MR（所有 API 调用的 key）。"""

    model_config = ConfigDict(frozen=True)

    project_id: int
    mr_iid: int


class CommentKind(str, Enum):
    """GitLab 的两种评论原语；每次运行只用其中一种。"""

    DISCUSSION = "discussion"
    NOTE = "note"


class NoteHandle(BaseModel):
    """/notes 列表里找到的 bot 评论。"""

    model_config = ConfigDict(frozen=True)

    note_id: int


class DiscussionNoteHandle(NoteHandle):
    """discussion thread 里找到的 bot 评论。"""

    discussion_id: str

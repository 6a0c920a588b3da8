"""
Note Locator：找到之前由本 bot 写下的评论。

规则：
- 作者必须是当前 bot 账号（或其随机化 username），且 body 里带有固定标记
- 第一遍只做精确匹配；找不到时再用随机名匹配完整扫描一遍
- 按 GitLab 返回的顺序，第一个命中的即为结果
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from changeset_bot.comment.composer import GENERATED_BY_BOT_NOTE
from changeset_bot.comment.identity import is_bot_author
from changeset_bot.comment.identity import resolve_username
from changeset_bot.comment.models import DiscussionNoteHandle
from changeset_bot.comment.models import MergeRequestRef
from changeset_bot.comment.models import NoteHandle
from changeset_bot.gitlab.client import GitLabClient
from changeset_bot.gitlab.schemas import GitLabDiscussion
from changeset_bot.gitlab.schemas import GitLabNote

logger = logging.getLogger(__name__)


def is_changeset_bot_note(note: GitLabNote, username: str, random: bool = False) -> bool:
    # GitLab 没有 GitHub App 那样的专属 bot 身份，只能靠 body 里的标记确认是自己写的
    return is_bot_author(note.author.username, username, random=random) and GENERATED_BY_BOT_NOTE in note.body


def scan_for_bot_note(
    items: Sequence[GitLabDiscussion | GitLabNote],
    username: str,
    random: bool = False,
) -> NoteHandle | None:
    """单遍扫描（纯函数）。thread 内嵌 note 只做精确 username 匹配。"""
    for item in items:
        if isinstance(item, GitLabNote):
            if item.noteable_type == "MergeRequest" and is_changeset_bot_note(item, username, random=random):
                return NoteHandle(note_id=item.id)
            continue

        if not item.notes:
            continue

        for note in item.notes:
            if is_changeset_bot_note(note, username):
                return DiscussionNoteHandle(discussion_id=item.id, note_id=note.id)

    return None


async def _list_comments(
    gitlab_client: GitLabClient,
    mr: MergeRequestRef,
    comment_type: str,
) -> Sequence[GitLabDiscussion | GitLabNote]:
    if comment_type == "discussion":
        return await gitlab_client.list_merge_request_discussions(project_id=mr.project_id, mr_iid=mr.mr_iid)
    return await gitlab_client.list_merge_request_notes(project_id=mr.project_id, mr_iid=mr.mr_iid)


async def find_bot_note(
    gitlab_client: GitLabClient,
    mr: MergeRequestRef,
    comment_type: str,
    random: bool = False,
) -> NoteHandle | None:
    """
    查找已有的 bot 评论，返回可用于原地编辑的句柄；没有则返回 None。

    - comment_type == "discussion" 时列 discussions，否则列 notes
    - random=False 时未命中会自动带 random=True 再扫一遍
      （@see https://docs.gitlab.com/ee/development/internal_users.html）
    """
    items = await _list_comments(gitlab_client=gitlab_client, mr=mr, comment_type=comment_type)
    username = await resolve_username(gitlab_client)

    handle = scan_for_bot_note(items, username, random=random)
    if handle is not None:
        logger.info(f"Found existing bot comment: {handle}")
        return handle

    if random:
        return None
    return await find_bot_note(gitlab_client=gitlab_client, mr=mr, comment_type=comment_type, random=True)

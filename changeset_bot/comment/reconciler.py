"""
Comment Reconciler（核心流程编排）。

一次 CI 运行：
CI env -> 并发（查找已有 bot 评论 / 是否新增 changeset / changed packages + release plan）
-> 生成评论正文 -> 编辑已有评论 或 新建评论（最多一次写操作）

失败策略：
- 非 MR pipeline、release 分支自己的 MR：只记日志，直接返回
- discovery 失败：降级为占位包名，继续跑（校验失败会在评论里附上原因）
- 非法 comment type：`ConfigurationError`，不写评论
- GitLab API 错误：先尽力打印 request/response，再原样抛出（CI job 失败）
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from changeset_bot.changesets.detection import has_changeset_been_added
from changeset_bot.changesets.discovery import ChangedPackagesDiscoverer
from changeset_bot.changesets.human_id import human_id
from changeset_bot.changesets.models import ChangedPackagesResult
from changeset_bot.changesets.models import ChangesetValidationError
from changeset_bot.comment.composer import build_add_changeset_url
from changeset_bot.comment.composer import render_absent
from changeset_bot.comment.composer import render_error_details
from changeset_bot.comment.composer import render_present
from changeset_bot.comment.locator import find_bot_note
from changeset_bot.comment.models import CommentKind
from changeset_bot.comment.models import DiscussionNoteHandle
from changeset_bot.comment.models import MergeRequestRef
from changeset_bot.comment.models import NoteHandle
from changeset_bot.config import BotConfig
from changeset_bot.gitlab.client import GitLabAPIError
from changeset_bot.gitlab.client import GitLabClient
from changeset_bot.gitlab.schemas import GitLabMergeRequestChanges
from changeset_bot.infra.error_tracking import ErrorReporter
from changeset_bot.infra.shared import SharedTask

logger = logging.getLogger(__name__)

RELEASE_BRANCH_PREFIX = "changeset-release"

# discovery 失败时深链里仍需要至少一个包名
FALLBACK_CHANGED_PACKAGES: tuple[str, ...] = ("@fake-scope/fake-pkg",)


class ConfigurationError(ValueError):
    """配置非法（例如未知的 comment type），属于致命错误。"""

    pass


@dataclass(frozen=True)
class CommentReconciler:
    """Reconciler 运行时依赖集合。"""

    config: BotConfig
    gitlab_client: GitLabClient
    discover: ChangedPackagesDiscoverer
    error_reporter: ErrorReporter
    slug_factory: Callable[[], str] = human_id


def should_comment(config: BotConfig) -> bool:
    """只在普通 MR pipeline 上评论（release 分支自己的 MR 不评论）。"""
    if not config.mr_branch:
        logger.warning("[changeset-bot:comment] It should only be used on MR")
        return False
    if config.mr_branch.startswith(RELEASE_BRANCH_PREFIX):
        logger.info(f"Skipping release branch {config.mr_branch}")
        return False
    return True


async def _discover_with_fallback(
    reconciler: CommentReconciler,
    mr: MergeRequestRef,
    shared_changes: SharedTask[GitLabMergeRequestChanges],
) -> tuple[ChangedPackagesResult, str]:
    """
    跑 discovery；失败不影响整体流程。

    返回 (结果, 追加到评论末尾的错误块)。错误块只在校验失败时非空。
    """
    try:
        changes = await shared_changes.result()
        return await reconciler.discover(mr, reconciler.config.ref, [c.new_path for c in changes.changes]), ""
    except ChangesetValidationError as exc:
        logger.warning(f"Changeset validation failed: {exc}")
        error_details = render_error_details(str(exc))
    except Exception as exc:
        logger.error(f"Failed to fetch changed packages: {exc!r}")
        reconciler.error_reporter.report(exc)
        error_details = ""
    fallback = ChangedPackagesResult(changed_packages=list(FALLBACK_CHANGED_PACKAGES), release_plan=None)
    return fallback, error_details


async def _has_changeset(shared_changes: SharedTask[GitLabMergeRequestChanges]) -> bool:
    return has_changeset_been_added(await shared_changes.result())


def parse_comment_kind(comment_type: str) -> CommentKind:
    try:
        return CommentKind(comment_type)
    except ValueError as exc:
        raise ConfigurationError(
            f'Invalid comment type "{comment_type}", should be "discussion" or "note"'
        ) from exc


async def write_comment(
    gitlab_client: GitLabClient,
    mr: MergeRequestRef,
    comment_type: str,
    note_handle: NoteHandle | None,
    body: str,
) -> None:
    """有句柄就原地编辑，没有就新建；每次调用恰好一次写请求。"""
    kind = parse_comment_kind(comment_type)

    if note_handle is not None:
        if kind is CommentKind.DISCUSSION and isinstance(note_handle, DiscussionNoteHandle):
            logger.info(f"Editing discussion note {note_handle.discussion_id}/{note_handle.note_id}")
            await gitlab_client.edit_merge_request_discussion_note(
                project_id=mr.project_id,
                mr_iid=mr.mr_iid,
                discussion_id=note_handle.discussion_id,
                note_id=note_handle.note_id,
                body=body,
            )
            return
        logger.info(f"Editing note {note_handle.note_id}")
        await gitlab_client.edit_merge_request_note(
            project_id=mr.project_id, mr_iid=mr.mr_iid, note_id=note_handle.note_id, body=body
        )
        return

    if kind is CommentKind.DISCUSSION:
        logger.info("Creating discussion")
        await gitlab_client.create_merge_request_discussion(project_id=mr.project_id, mr_iid=mr.mr_iid, body=body)
        return

    logger.info("Creating note")
    await gitlab_client.create_merge_request_note(project_id=mr.project_id, mr_iid=mr.mr_iid, body=body)


def log_gitlab_api_error(error: GitLabAPIError) -> None:
    """打印 API 错误诊断信息；打印本身失败只记一行，不掩盖原始错误。"""
    logger.error(error.description)
    try:
        logger.error(f"request: {error.request.content.decode('utf-8')}")
    except (httpx.RequestNotRead, UnicodeDecodeError):
        logger.error("The error's request could not be used as plain text")
    try:
        logger.error(f"response: {error.response.text}")
    except (httpx.ResponseNotRead, UnicodeDecodeError):
        logger.error("The error's response could not be used as plain text")


async def _reconcile(reconciler: CommentReconciler, mr: MergeRequestRef, mr_branch: str) -> None:
    config = reconciler.config
    gitlab_client = reconciler.gitlab_client

    shared_changes: SharedTask[GitLabMergeRequestChanges] = SharedTask(
        lambda: gitlab_client.get_merge_request_changes(project_id=mr.project_id, mr_iid=mr.mr_iid)
    )

    note_handle, has_changeset, (discovered, error_details) = await asyncio.gather(
        find_bot_note(gitlab_client=gitlab_client, mr=mr, comment_type=config.comment_type),
        _has_changeset(shared_changes),
        _discover_with_fallback(reconciler=reconciler, mr=mr, shared_changes=shared_changes),
    )

    add_changeset_url = build_add_changeset_url(
        project_url=config.project_url or "",
        branch=mr_branch,
        changed_packages=discovered.changed_packages,
        title=config.mr_title,
        slug=reconciler.slug_factory(),
        commit_message=config.add_changeset_message,
    )

    render = render_present if has_changeset else render_absent
    body = render(config.commit_sha, add_changeset_url, discovered.release_plan) + error_details

    await write_comment(
        gitlab_client=gitlab_client,
        mr=mr,
        comment_type=config.comment_type,
        note_handle=note_handle,
        body=body,
    )


async def run_comment(reconciler: CommentReconciler) -> None:
    """一次完整的评论同步；返回时至多发生过一次写操作。"""
    config = reconciler.config
    if not should_comment(config):
        return
    mr = config.merge_request()
    try:
        await _reconcile(reconciler=reconciler, mr=mr, mr_branch=config.mr_branch or "")
    except GitLabAPIError as exc:
        log_gitlab_api_error(exc)
        raise

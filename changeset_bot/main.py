"""
CLI 入口（GitLab CI job 里执行 `changeset-bot comment`）。

这里做三件事：
- 加载配置（一次性读取 CI 环境变量，严格校验）
- 组装外部依赖（httpx.AsyncClient / GitLabClient / discovery / 错误上报）
- 跑一次 reconciler

注意：
- 业务流程不写在这里（由 `comment/reconciler.py` 负责）
- 致命错误直接抛出，进程非 0 退出，CI job 失败
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from collections.abc import Sequence

import httpx

from changeset_bot.changesets.discovery import GitLabChangedPackagesDiscoverer
from changeset_bot.comment.reconciler import CommentReconciler
from changeset_bot.comment.reconciler import run_comment
from changeset_bot.config import BotConfig
from changeset_bot.config import load_config_from_env
from changeset_bot.gitlab.client import GitLabClient
from changeset_bot.infra.error_tracking import LoggingErrorReporter


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def comment(config: BotConfig) -> None:
    """`comment` 子命令：同步 MR 上的 changeset 评论。"""
    async with httpx.AsyncClient(timeout=httpx.Timeout(30.0)) as http_client:
        gitlab_client = GitLabClient(
            base_url=str(config.gitlab_host).rstrip("/"),
            token=config.gitlab_token,
            http_client=http_client,
            token_type=config.gitlab_token_type,
        )
        reconciler = CommentReconciler(
            config=config,
            gitlab_client=gitlab_client,
            discover=GitLabChangedPackagesDiscoverer(gitlab_client=gitlab_client),
            error_reporter=LoggingErrorReporter(),
        )
        await run_comment(reconciler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="changeset-bot",
        description="Changesets bot for GitLab merge requests.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "environment variables:\n"
            "  GITLAB_TOKEN                   API token (required on MR pipelines)\n"
            "  GITLAB_TOKEN_TYPE              personal | job | oauth (default: personal)\n"
            "  GITLAB_HOST                    GitLab URL (default: CI_SERVER_URL or https://gitlab.com)\n"
            "  GITLAB_COMMENT_TYPE            discussion | note (default: discussion)\n"
            "  GITLAB_ADD_CHANGESET_MESSAGE   commit message for the add-changeset link\n"
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("comment", help="Post or update the changeset comment on the current MR")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    config = load_config_from_env(os.environ)
    configure_logging(config.log_level)

    if args.command == "comment":
        asyncio.run(comment(config))


if __name__ == "__main__":
    main()

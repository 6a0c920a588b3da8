"""
Bot 身份解析。

GitLab 会给 project/group access token 的机器人账号分配带随机后缀的 username，
例如 `project_123_bot_8f3a`，而 /user 返回的可能是不带后缀的基础名。
"""

from __future__ import annotations

import re

from changeset_bot.gitlab.client import GitLabClient

RANDOM_BOT_NAME_PATTERN = re.compile(r"^((?:project|group)_\d+_bot\w*)_[\da-z]+$", re.IGNORECASE)


async def resolve_username(gitlab_client: GitLabClient) -> str:
    """当前 token 对应账号的 username（client 内部已缓存）。"""
    user = await gitlab_client.get_current_user()
    return user.username


def random_bot_base_name(username: str) -> str | None:
    """
    从随机化的机器人 username 中提取基础名；不匹配返回 None。

    `project_123_bot7x_ab12` -> `project_123_bot7x`
    """
    match = RANDOM_BOT_NAME_PATTERN.match(username)
    if match is None:
        return None
    return match.group(1)


def is_bot_author(author_username: str, bot_username: str, random: bool = False) -> bool:
    if author_username == bot_username:
        return True
    return random and random_bot_base_name(author_username) == bot_username

"""
判断 MR 是否新增了 changeset 文件（非 AI，纯规则）。
"""

from __future__ import annotations

import re

from changeset_bot.gitlab.schemas import GitLabMergeRequestChanges
from changeset_bot.gitlab.schemas import GitLabMRChange

CHANGESET_DIR = ".changeset"
CHANGESET_FILE_PATTERN = re.compile(r"^\.changeset/.+\.md$")
CHANGESET_README = f"{CHANGESET_DIR}/README.md"


def is_changeset_path(path: str) -> bool:
    """`.changeset/*.md`，但不包括目录自带的 README。"""
    return CHANGESET_FILE_PATTERN.match(path) is not None and path != CHANGESET_README


def is_added_changeset(change: GitLabMRChange) -> bool:
    return change.new_file and is_changeset_path(change.new_path)


def has_changeset_been_added(changes: GitLabMergeRequestChanges) -> bool:
    return any(is_added_changeset(c) for c in changes.changes)

"""
Changeset 领域模型（Pydantic）。

- `Changeset`：`.changeset/*.md` 里的一份变更声明
- `ReleasePlan`：所有 changeset 汇总后，每个包的 bump 类型
- `ChangedPackagesResult`：MR 影响到的包 + release plan（discovery 的输出）
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

VersionType = Literal["major", "minor", "patch", "none"]

# 数值越大 bump 越高
VERSION_TYPE_RANK: dict[str, int] = {"none": 0, "patch": 1, "minor": 2, "major": 3}


class ChangesetValidationError(ValueError):
    """changeset / workspace 数据不合法（预期内的失败，评论里会展示 message）。"""

    pass


class ChangesetRelease(BaseModel):
    """changeset frontmatter 里的一行：`"pkg": minor`。"""

    name: str
    type: VersionType


class Changeset(BaseModel):
    id: str
    summary: str
    releases: list[ChangesetRelease] = Field(default_factory=list)


class Release(BaseModel):
    """release plan 里单个包的最终 bump 类型。"""

    name: str
    type: VersionType


class ReleasePlan(BaseModel):
    changesets: list[Changeset] = Field(default_factory=list)
    releases: list[Release] = Field(default_factory=list)


class ChangedPackagesResult(BaseModel):
    changed_packages: list[str]
    release_plan: ReleasePlan | None = None

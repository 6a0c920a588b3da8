"""
Bot 配置加载。

设计目标：
- **一次性读取**：CI 环境变量只在入口读一次，之后以不可变对象传递
- **严格**：在 MR pipeline 里缺少必要环境变量就直接报错
- **类型安全**：使用 Pydantic 校验 URL/整数/枚举
- **可测试**：核心加载函数接收 `environ` 显式输入，便于单元测试

说明：
- 不在 MR pipeline（没有 source branch）时不做必填校验，运行时直接跳过
- `comment_type` 保留原始字符串，写评论时才校验（非法值是致命配置错误）
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

from changeset_bot.comment.models import MergeRequestRef

DEFAULT_GITLAB_HOST = "https://gitlab.com"


class BotConfig(BaseModel):
    """一次 CI 运行所需的全部配置。"""

    model_config = ConfigDict(frozen=True)

    mr_branch: str | None = None
    mr_iid: int | None = None
    project_id: int | None = None
    project_url: str | None = None
    commit_sha: str = ""
    mr_title: str = ""
    comment_type: str = "discussion"
    add_changeset_message: str | None = None
    gitlab_host: HttpUrl = Field(default=DEFAULT_GITLAB_HOST, validate_default=True)
    gitlab_token: str = ""
    gitlab_token_type: Literal["personal", "job", "oauth"] = "personal"
    log_level: str = "INFO"

    @property
    def in_merge_request(self) -> bool:
        return bool(self.mr_branch)

    def merge_request(self) -> MergeRequestRef:
        if self.project_id is None or self.mr_iid is None:
            raise ValueError("Not running in a merge request pipeline")
        return MergeRequestRef(project_id=self.project_id, mr_iid=self.mr_iid)

    @property
    def ref(self) -> str:
        """读取仓库内容用的 ref：优先 commit sha，其次 source branch。"""
        return self.commit_sha or self.mr_branch or ""


def load_config_from_env(environ: Mapping[str, str]) -> BotConfig:
    """
    从环境变量加载并校验配置。

    - **输入**：`environ`（例如 `os.environ`）
    - **输出**：`BotConfig`
    - **失败**：MR pipeline 中缺失/为空则抛 `ValueError`（Pydantic 校验失败同样是 `ValueError`）
    """

    def _get(key: str) -> str | None:
        # GitLab 会把未设置的变量展开成空串，统一当作缺失
        value = environ.get(key)
        return value if value else None

    mr_branch = _get("CI_MERGE_REQUEST_SOURCE_BRANCH_NAME")

    if mr_branch is not None:
        required_keys: tuple[str, ...] = (
            "CI_MERGE_REQUEST_IID",
            "CI_MERGE_REQUEST_PROJECT_URL",
            "CI_PROJECT_ID",
            "GITLAB_TOKEN",
        )
        missing: list[str] = [key for key in required_keys if _get(key) is None]
        if missing:
            raise ValueError(f"Missing required env vars: {', '.join(missing)}")

    return BotConfig(
        mr_branch=mr_branch,
        mr_iid=_get("CI_MERGE_REQUEST_IID"),
        project_id=_get("CI_PROJECT_ID"),
        project_url=_get("CI_MERGE_REQUEST_PROJECT_URL"),
        commit_sha=_get("CI_MERGE_REQUEST_SOURCE_BRANCH_SHA") or "",
        mr_title=_get("CI_MERGE_REQUEST_TITLE") or "",
        comment_type=_get("GITLAB_COMMENT_TYPE") or "discussion",
        add_changeset_message=_get("GITLAB_ADD_CHANGESET_MESSAGE"),
        gitlab_host=_get("GITLAB_HOST") or _get("CI_SERVER_URL") or DEFAULT_GITLAB_HOST,
        gitlab_token=_get("GITLAB_TOKEN") or "",
        gitlab_token_type=_get("GITLAB_TOKEN_TYPE") or "personal",
        log_level=(_get("LOG_LEVEL") or "INFO").upper(),
    )

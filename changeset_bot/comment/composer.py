"""
Message Composer（确定性输出）。

注意：
- 渲染函数都是纯函数：同样的输入必须得到逐字节相同的评论正文
- 随机的 changeset 文件名由调用方生成后传进来
- 每条评论都带 `GENERATED_BY_BOT_NOTE`，下次运行靠它认出自己
"""

from __future__ import annotations

from collections.abc import Sequence
from urllib.parse import quote

from changeset_bot.changesets.models import ReleasePlan

GENERATED_BY_BOT_NOTE = "Generated By Changesets GitLab Bot"

ADDING_A_CHANGESET_DOCS_URL = "https://github.com/changesets/changesets/blob/master/docs/adding-a-changeset.md"

VERSION_TYPE_TITLES: dict[str, str] = {"major": "Major", "minor": "Minor", "patch": "Patch"}

# 与 encodeURIComponent 相同的保留字符
_URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def markdown_table(rows: Sequence[Sequence[str]]) -> str:
    """第一行为表头；列宽对齐，分隔行至少 3 个 `-`。"""
    column_count = max(len(row) for row in rows)
    widths = [3] * column_count
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    def _line(cells: Sequence[str]) -> str:
        padded = [cells[i].ljust(widths[i]) if i < len(cells) else " " * widths[i] for i in range(column_count)]
        return "| " + " | ".join(padded) + " |"

    lines = [_line(rows[0]), _line(["-" * w for w in widths])]
    lines.extend(_line(row) for row in rows[1:])
    return "\n".join(lines)


def render_release_plan_summary(release_plan: ReleasePlan | None) -> str:
    """release plan 折叠块；plan 缺失（discovery 失败）时返回空串。"""
    if release_plan is None:
        return ""

    publishable = [r for r in release_plan.releases if r.type != "none"]

    if release_plan.changesets:
        count = "1 package" if len(publishable) == 1 else f"{len(publishable)} packages"
        summary = f"changesets to release {count}"
    else:
        summary = "no changesets"

    if publishable:
        table = markdown_table([["Name", "Type"], *[[r.name, VERSION_TYPE_TITLES[r.type]] for r in publishable]])
        content = table
    else:
        content = (
            "When changesets are added to this MR, you'll see the packages "
            "that this MR includes changesets for and the associated semver types"
        )

    return f"<details><summary>This MR includes {summary}</summary>\n\n  {content}\n\n</details>"


def render_absent(commit_sha: str, add_changeset_url: str, release_plan: ReleasePlan | None) -> str:
    """MR 没有新增 changeset 时的评论正文。"""
    return (
        "###  ⚠️  No Changeset found\n"
        "\n"
        f"Latest commit: {commit_sha}\n"
        "\n"
        "Merging this MR will not cause a version bump for any packages. "
        "If these changes should not result in a new version, you're good to go. "
        "**If these changes should result in a version bump, you need to add a changeset.**\n"
        "\n"
        f"{render_release_plan_summary(release_plan)}\n"
        "\n"
        f"[Click here to learn what changesets are, and how to add one]({ADDING_A_CHANGESET_DOCS_URL}).\n"
        "\n"
        f"[Click here if you're a maintainer who wants to add a changeset to this MR]({add_changeset_url})\n"
        "\n"
        f"__{GENERATED_BY_BOT_NOTE}__\n"
    )


def render_present(commit_sha: str, add_changeset_url: str, release_plan: ReleasePlan | None) -> str:
    """MR 已包含 changeset 时的评论正文。"""
    return (
        "###  🦋  Changeset detected\n"
        "\n"
        f"Latest commit: {commit_sha}\n"
        "\n"
        "**The changes in this MR will be included in the next version bump.**\n"
        "\n"
        f"{render_release_plan_summary(release_plan)}\n"
        "\n"
        f"Not sure what this means? [Click here  to learn what changesets are]({ADDING_A_CHANGESET_DOCS_URL}).\n"
        "\n"
        f"[Click here if you're a maintainer who wants to add another changeset to this MR]({add_changeset_url})\n"
        "\n"
        f"__{GENERATED_BY_BOT_NOTE}__\n"
    )


def render_error_details(message: str) -> str:
    """discovery 校验失败时追加在评论末尾的折叠块。"""
    return (
        "<details><summary>💥 An error occurred when fetching the changed packages "
        "and changesets in this MR</summary>\n"
        "\n"
        "```\n"
        f"{message}\n"
        "```\n"
        "\n"
        "</details>\n"
    )


def render_new_changeset_template(changed_packages: Sequence[str], title: str) -> str:
    """预填的 changeset 内容（未编码）：每个改动的包都先给 patch。"""
    releases = "\n".join(f'"{name}": patch' for name in changed_packages)
    return f"---\n{releases}\n---\n\n{title}\n"


def build_add_changeset_url(
    project_url: str,
    branch: str,
    changed_packages: Sequence[str],
    title: str,
    slug: str,
    commit_message: str | None = None,
) -> str:
    """
    GitLab “新建文件”页面的深链，文件名/内容/提交信息都已预填。

    - slug：建议的文件名（`.changeset/{slug}.md`）
    - commit_message：可选，配置了才带上
    """
    template = encode_uri_component(render_new_changeset_template(changed_packages=changed_packages, title=title))
    url = f"{project_url.rstrip('/')}/-/new/{branch}?file_name=.changeset/{slug}.md&file={template}"
    if commit_message:
        url += "&commit_message=" + encode_uri_component(commit_message)
    return url

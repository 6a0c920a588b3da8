"""
Changed packages / release plan discovery（通过 GitLab API 读取仓库，不 clone）。

流程：
- 列出 MR head 上的仓库文件树
- 读取根 `package.json` 的 `workspaces`（数组或 `{packages: [...]}`），
  目录命中这些 glob 的 `package.json` 才是 workspace 包；没有声明时只有根包
- 变更文件按“最长目录前缀”归属到包
- 读取 `.changeset/*.md`，解析 frontmatter，得到每个包的最高 bump 类型
- raw file 并发读取，同时在途的请求数不超过 `max_concurrent_fetches`

数据不合法时抛 `ChangesetValidationError`（上游会降级并在评论里展示原因）。
"""

from __future__ import annotations

import asyncio
import json
import logging
import posixpath
import re
from collections.abc import Sequence
from fnmatch import fnmatchcase
from typing import Protocol

from changeset_bot.changesets.detection import is_changeset_path
from changeset_bot.changesets.models import VERSION_TYPE_RANK
from changeset_bot.changesets.models import ChangedPackagesResult
from changeset_bot.changesets.models import Changeset
from changeset_bot.changesets.models import ChangesetRelease
from changeset_bot.changesets.models import ChangesetValidationError
from changeset_bot.changesets.models import Release
from changeset_bot.changesets.models import ReleasePlan
from changeset_bot.comment.models import MergeRequestRef
from changeset_bot.gitlab.client import GitLabClient

logger = logging.getLogger(__name__)

PACKAGE_JSON = "package.json"

MAX_CONCURRENT_FETCHES = 8

_RELEASE_LINE = re.compile(r"""^\s*(["']?)(?P<name>[^"':]+)\1\s*:\s*(?P<type>\S+)\s*$""")


class ChangedPackagesDiscoverer(Protocol):
    """discovery 接口：给定变更文件列表，返回受影响的包 + release plan。"""

    async def __call__(self, mr: MergeRequestRef, ref: str, changed_files: Sequence[str]) -> ChangedPackagesResult: ...


class WorkspacePackage:
    """一个 workspace 包：名字 + 所在目录（仓库根目录为空串）。"""

    def __init__(self, name: str, directory: str) -> None:
        self.name = name
        self.directory = directory

    def contains(self, path: str) -> bool:
        if not self.directory:
            return True
        return path == self.directory or path.startswith(self.directory + "/")

    def __repr__(self) -> str:
        return f"WorkspacePackage(name={self.name!r}, directory={self.directory!r})"


def workspace_globs(manifest: object) -> list[str]:
    """根 package.json 里声明的 workspace glob；支持数组和 `{packages: [...]}` 两种写法。"""
    workspaces = manifest.get("workspaces") if isinstance(manifest, dict) else None
    if isinstance(workspaces, dict):
        workspaces = workspaces.get("packages")
    if not isinstance(workspaces, list):
        return []
    return [g for g in workspaces if isinstance(g, str) and g]


def _match_segments(pattern: Sequence[str], parts: Sequence[str]) -> bool:
    if not pattern:
        return not parts
    if pattern[0] == "**":
        return any(_match_segments(pattern[1:], parts[i:]) for i in range(len(parts) + 1))
    if not parts:
        return False
    return fnmatchcase(parts[0], pattern[0]) and _match_segments(pattern[1:], parts[1:])


def _glob_matches(glob: str, directory: str) -> bool:
    """按路径段匹配：`*` 不跨 `/`，`**` 匹配任意层目录。"""
    normalized = glob[2:] if glob.startswith("./") else glob
    normalized = normalized.rstrip("/")
    return _match_segments(normalized.split("/"), directory.split("/"))


def is_workspace_directory(directory: str, globs: Sequence[str]) -> bool:
    """目录是否属于 workspace；`!` 开头的 glob 表示排除，后出现的规则覆盖前面的。"""
    included = False
    for glob in globs:
        if glob.startswith("!"):
            if _glob_matches(glob[1:], directory):
                included = False
        elif _glob_matches(glob, directory):
            included = True
    return included


def parse_changeset(changeset_id: str, content: str) -> Changeset:
    """
    解析单个 changeset 文件。

    格式：
        ---
        "pkg-a": minor
        pkg-b: patch
        ---

        summary
    """
    lines = content.replace("\r\n", "\n").split("\n")
    if not lines or lines[0].strip() != "---":
        raise ChangesetValidationError(f"could not parse changeset - missing or invalid frontmatter: {changeset_id}")
    try:
        end = next(i for i in range(1, len(lines)) if lines[i].strip() == "---")
    except StopIteration as exc:
        raise ChangesetValidationError(
            f"could not parse changeset - missing or invalid frontmatter: {changeset_id}"
        ) from exc

    releases: list[ChangesetRelease] = []
    for line in lines[1:end]:
        if not line.strip():
            continue
        match = _RELEASE_LINE.match(line)
        if match is None:
            raise ChangesetValidationError(f"could not parse changeset - invalid frontmatter line in {changeset_id}: {line}")
        bump = match.group("type")
        if bump not in VERSION_TYPE_RANK:
            raise ChangesetValidationError(
                f'invalid version type "{bump}" for package "{match.group("name")}" in changeset {changeset_id}'
            )
        releases.append(ChangesetRelease(name=match.group("name").strip(), type=bump))

    summary = "\n".join(lines[end + 1 :]).strip()
    return Changeset(id=changeset_id, summary=summary, releases=releases)


def assemble_release_plan(changesets: Sequence[Changeset], package_names: set[str]) -> ReleasePlan:
    """每个包取所有 changeset 中最高的 bump；releases 按包名排序。"""
    highest: dict[str, str] = {}
    for changeset in changesets:
        for release in changeset.releases:
            if release.name not in package_names:
                raise ChangesetValidationError(
                    f"Found changeset {changeset.id} for package {release.name} which is not in the workspace"
                )
            current = highest.get(release.name, "none")
            if VERSION_TYPE_RANK[release.type] >= VERSION_TYPE_RANK[current]:
                highest[release.name] = release.type

    releases = [Release(name=name, type=bump) for name, bump in sorted(highest.items())]
    return ReleasePlan(changesets=list(changesets), releases=releases)


def match_changed_packages(packages: Sequence[WorkspacePackage], changed_files: Sequence[str]) -> list[str]:
    """
    变更文件 -> 包名（按首次出现顺序去重）。

    - 多包仓库里根目录的包不参与归属
    - 只有根包时，所有变更都归它
    """
    candidates = [p for p in packages if p.directory] or list(packages)
    changed: list[str] = []
    for path in changed_files:
        owners = [p for p in candidates if p.contains(path)]
        if not owners:
            continue
        owner = max(owners, key=lambda p: len(p.directory))
        if owner.name not in changed:
            changed.append(owner.name)
    return changed


def _parse_manifest(path: str, content: str) -> object:
    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        raise ChangesetValidationError(f"Invalid JSON in {path}: {exc}") from exc


def _package_name(manifest: object) -> str | None:
    name = manifest.get("name") if isinstance(manifest, dict) else None
    return name if isinstance(name, str) and name else None


class GitLabChangedPackagesDiscoverer:
    """基于 GitLab repository API 的默认 discovery 实现。"""

    def __init__(self, gitlab_client: GitLabClient, max_concurrent_fetches: int = MAX_CONCURRENT_FETCHES) -> None:
        self._gitlab_client = gitlab_client
        self._max_concurrent_fetches = max_concurrent_fetches

    async def __call__(self, mr: MergeRequestRef, ref: str, changed_files: Sequence[str]) -> ChangedPackagesResult:
        tree = await self._gitlab_client.list_repository_tree(project_id=mr.project_id, ref=ref)
        blob_paths = [item.path for item in tree if item.type == "blob"]
        # semaphore 绑定当前事件循环，按调用创建
        limit = asyncio.Semaphore(self._max_concurrent_fetches)

        root_manifest: object = {}
        if PACKAGE_JSON in blob_paths:
            (root_content,) = await self._read_files(mr=mr, ref=ref, paths=[PACKAGE_JSON], limit=limit)
            root_manifest = _parse_manifest(PACKAGE_JSON, root_content)
        globs = workspace_globs(root_manifest)

        package_json_paths = [
            p
            for p in blob_paths
            if posixpath.basename(p) == PACKAGE_JSON
            and posixpath.dirname(p)
            and "node_modules" not in p.split("/")
            and is_workspace_directory(posixpath.dirname(p), globs)
        ]
        changeset_paths = [p for p in blob_paths if is_changeset_path(p)]

        workspace_packages, changesets = await asyncio.gather(
            self._load_packages(mr=mr, ref=ref, paths=package_json_paths, limit=limit),
            self._load_changesets(mr=mr, ref=ref, paths=changeset_paths, limit=limit),
        )
        packages: list[WorkspacePackage] = []
        root_name = _package_name(root_manifest)
        if root_name is not None:
            packages.append(WorkspacePackage(name=root_name, directory=""))
        packages.extend(workspace_packages)
        logger.info(f"Workspace globs: {globs}, packages: {len(packages)}, changesets: {len(changesets)}")

        release_plan = assemble_release_plan(changesets=changesets, package_names={p.name for p in packages})
        return ChangedPackagesResult(
            changed_packages=match_changed_packages(packages=packages, changed_files=changed_files),
            release_plan=release_plan,
        )

    async def _read_files(
        self, mr: MergeRequestRef, ref: str, paths: Sequence[str], limit: asyncio.Semaphore
    ) -> list[str]:
        async def _read(path: str) -> str:
            async with limit:
                return await self._gitlab_client.get_raw_file(project_id=mr.project_id, file_path=path, ref=ref)

        return list(await asyncio.gather(*[_read(p) for p in paths]))

    async def _load_packages(
        self, mr: MergeRequestRef, ref: str, paths: Sequence[str], limit: asyncio.Semaphore
    ) -> list[WorkspacePackage]:
        contents = await self._read_files(mr=mr, ref=ref, paths=paths, limit=limit)
        packages: list[WorkspacePackage] = []
        for path, content in zip(paths, contents):
            directory = posixpath.dirname(path)
            name = _package_name(_parse_manifest(path, content))
            if name is None:
                raise ChangesetValidationError(f'The package at "{directory}" does not have a name')
            packages.append(WorkspacePackage(name=name, directory=directory))
        return packages

    async def _load_changesets(
        self, mr: MergeRequestRef, ref: str, paths: Sequence[str], limit: asyncio.Semaphore
    ) -> list[Changeset]:
        contents = await self._read_files(mr=mr, ref=ref, paths=paths, limit=limit)
        return [
            parse_changeset(changeset_id=posixpath.splitext(posixpath.basename(path))[0], content=content)
            for path, content in zip(paths, contents)
        ]

from __future__ import annotations

import asyncio
import json
import posixpath

import pytest

from changeset_bot.changesets.discovery import GitLabChangedPackagesDiscoverer
from changeset_bot.changesets.discovery import WorkspacePackage
from changeset_bot.changesets.discovery import assemble_release_plan
from changeset_bot.changesets.discovery import is_workspace_directory
from changeset_bot.changesets.discovery import match_changed_packages
from changeset_bot.changesets.discovery import parse_changeset
from changeset_bot.changesets.models import ChangesetValidationError
from changeset_bot.gitlab.schemas import GitLabTreeItem


def test_parse_changeset_reads_frontmatter_and_summary() -> None:
    content = '---\n"@scope/a": minor\n\'b\': patch\nc: major\n---\n\nAdd a feature\n'
    changeset = parse_changeset("brave-owls-dance", content)
    assert changeset.id == "brave-owls-dance"
    assert changeset.summary == "Add a feature"
    assert [(r.name, r.type) for r in changeset.releases] == [("@scope/a", "minor"), ("b", "patch"), ("c", "major")]


def test_parse_changeset_allows_empty_frontmatter() -> None:
    changeset = parse_changeset("empty", "---\n---\n")
    assert changeset.releases == []


def test_parse_changeset_rejects_missing_frontmatter() -> None:
    with pytest.raises(ChangesetValidationError):
        parse_changeset("bad", "just some text\n")
    with pytest.raises(ChangesetValidationError):
        parse_changeset("unterminated", '---\n"a": patch\n')


def test_parse_changeset_rejects_invalid_version_type() -> None:
    with pytest.raises(ChangesetValidationError) as exc_info:
        parse_changeset("bad", '---\n"a": huge\n---\n')
    assert 'invalid version type "huge"' in str(exc_info.value)


def test_assemble_release_plan_takes_highest_bump() -> None:
    changesets = [
        parse_changeset("one", '---\n"b": patch\n"a": minor\n---\n'),
        parse_changeset("two", '---\n"b": major\n"a": patch\n---\n'),
    ]
    plan = assemble_release_plan(changesets, package_names={"a", "b"})
    assert [(r.name, r.type) for r in plan.releases] == [("a", "minor"), ("b", "major")]
    assert len(plan.changesets) == 2


def test_assemble_release_plan_rejects_unknown_package() -> None:
    changesets = [parse_changeset("one", '---\n"ghost": patch\n---\n')]
    with pytest.raises(ChangesetValidationError) as exc_info:
        assemble_release_plan(changesets, package_names={"a"})
    assert "ghost" in str(exc_info.value)


def test_match_changed_packages_uses_longest_prefix() -> None:
    packages = [
        WorkspacePackage(name="root", directory=""),
        WorkspacePackage(name="a", directory="packages/a"),
        WorkspacePackage(name="a-plugin", directory="packages/a/plugin"),
        WorkspacePackage(name="ab", directory="packages/ab"),
    ]
    changed = match_changed_packages(
        packages,
        ["packages/a/plugin/x.ts", "packages/ab/y.ts", "packages/a/z.ts", "packages/a/w.ts", "README.md"],
    )
    assert changed == ["a-plugin", "ab", "a"]


def test_match_changed_packages_single_root_package() -> None:
    packages = [WorkspacePackage(name="solo", directory="")]
    assert match_changed_packages(packages, ["src/index.ts", "README.md"]) == ["solo"]


@pytest.mark.asyncio
async def test_discoverer_reads_repository(gitlab_client, fake_gitlab, mr) -> None:
    fake_gitlab.files = {
        "package.json": '{"private": true, "workspaces": ["packages/*"]}',
        "packages/core/package.json": '{"name": "@demo/core"}',
        "packages/cli/package.json": '{"name": "@demo/cli"}',
        "node_modules/left-pad/package.json": '{"name": "left-pad"}',
        ".changeset/README.md": "# Changesets",
        ".changeset/brave-owls-dance.md": '---\n"@demo/core": minor\n---\n\nAdd answer\n',
    }
    discover = GitLabChangedPackagesDiscoverer(gitlab_client=gitlab_client)
    result = await discover(mr, "abc123", ["packages/core/src/index.ts", ".changeset/brave-owls-dance.md"])
    assert result.changed_packages == ["@demo/core"]
    assert result.release_plan is not None
    assert [(r.name, r.type) for r in result.release_plan.releases] == [("@demo/core", "minor")]
    assert [c.id for c in result.release_plan.changesets] == ["brave-owls-dance"]


@pytest.mark.asyncio
async def test_discoverer_ignores_package_json_outside_workspaces(gitlab_client, fake_gitlab, mr) -> None:
    fake_gitlab.files = {
        "package.json": '{"private": true, "workspaces": ["packages/*"]}',
        "packages/core/package.json": '{"name": "@demo/core"}',
        "packages/core/test/fixtures/app/package.json": '{"private": true}',
        "examples/demo/package.json": '{"name": "demo-example"}',
    }
    discover = GitLabChangedPackagesDiscoverer(gitlab_client=gitlab_client)
    result = await discover(
        mr, "abc123", ["packages/core/test/fixtures/app/index.js", "examples/demo/index.js"]
    )
    assert result.changed_packages == ["@demo/core"]
    assert result.release_plan is not None
    assert result.release_plan.releases == []
    assert fake_gitlab.count("GET", "/api/v4/projects/7/repository/files/examples/demo/package.json/raw") == 0


@pytest.mark.asyncio
async def test_discoverer_reads_object_workspaces(gitlab_client, fake_gitlab, mr) -> None:
    fake_gitlab.files = {
        "package.json": '{"workspaces": {"packages": ["apps/**", "!apps/legacy"]}}',
        "apps/web/package.json": '{"name": "web"}',
        "apps/tools/cli/package.json": '{"name": "cli"}',
        "apps/legacy/package.json": '{"private": true}',
        ".changeset/brave-owls-dance.md": '---\n"cli": patch\n---\n',
    }
    discover = GitLabChangedPackagesDiscoverer(gitlab_client=gitlab_client)
    result = await discover(mr, "abc123", ["apps/tools/cli/main.ts", "apps/web/page.tsx"])
    assert result.changed_packages == ["cli", "web"]
    assert result.release_plan is not None
    assert [(r.name, r.type) for r in result.release_plan.releases] == [("cli", "patch")]


@pytest.mark.asyncio
async def test_discoverer_without_workspaces_uses_root_package(gitlab_client, fake_gitlab, mr) -> None:
    fake_gitlab.files = {
        "package.json": '{"name": "solo"}',
        "test/fixtures/app/package.json": '{"private": true}',
    }
    discover = GitLabChangedPackagesDiscoverer(gitlab_client=gitlab_client)
    result = await discover(mr, "abc123", ["src/index.ts", "test/fixtures/app/index.js"])
    assert result.changed_packages == ["solo"]


@pytest.mark.asyncio
async def test_discoverer_rejects_unnamed_workspace_package(gitlab_client, fake_gitlab, mr) -> None:
    fake_gitlab.files = {
        "package.json": '{"private": true, "workspaces": ["packages/*"]}',
        "packages/core/package.json": '{"version": "1.0.0"}',
    }
    discover = GitLabChangedPackagesDiscoverer(gitlab_client=gitlab_client)
    with pytest.raises(ChangesetValidationError) as exc_info:
        await discover(mr, "abc123", ["packages/core/index.ts"])
    assert 'The package at "packages/core" does not have a name' in str(exc_info.value)


class SlowGitLab:
    """只实现 discovery 用到的两个方法，记录同时在途的 raw file 请求数。"""

    def __init__(self, files: dict[str, str]) -> None:
        self.files = files
        self.in_flight = 0
        self.max_in_flight = 0

    async def list_repository_tree(self, project_id: int, ref: str) -> list[GitLabTreeItem]:
        return [
            GitLabTreeItem(id=str(i), name=posixpath.basename(p), type="blob", path=p, mode="100644")
            for i, p in enumerate(sorted(self.files))
        ]

    async def get_raw_file(self, project_id: int, file_path: str, ref: str) -> str:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0.001)
        self.in_flight -= 1
        return self.files[file_path]


@pytest.mark.asyncio
async def test_discoverer_caps_concurrent_file_reads(mr) -> None:
    files = {"package.json": '{"private": true, "workspaces": ["packages/*"]}'}
    for i in range(20):
        files[f"packages/p{i}/package.json"] = json.dumps({"name": f"p{i}"})
        files[f".changeset/change-{i}.md"] = f'---\n"p{i}": patch\n---\n'
    gitlab = SlowGitLab(files)

    discover = GitLabChangedPackagesDiscoverer(gitlab_client=gitlab, max_concurrent_fetches=3)
    result = await discover(mr, "abc123", ["packages/p0/index.ts"])

    assert gitlab.max_in_flight == 3
    assert result.changed_packages == ["p0"]
    assert result.release_plan is not None
    assert len(result.release_plan.releases) == 20


def test_is_workspace_directory_matches_by_segment() -> None:
    assert is_workspace_directory("packages/core", ["packages/*"])
    assert not is_workspace_directory("packages/core/test/fixtures/app", ["packages/*"])
    assert is_workspace_directory("packages/core/test", ["./packages/**"])
    assert not is_workspace_directory("packages/legacy", ["packages/*", "!packages/legacy"])
    assert not is_workspace_directory("examples/demo", [])

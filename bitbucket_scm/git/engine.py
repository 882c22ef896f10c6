"""Full checkout engine driving the git CLI."""

from __future__ import annotations

import fnmatch
import logging
import re
import subprocess
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from bitbucket_scm.scm.browser import StashBrowser
from bitbucket_scm.scm.engine import (
    BuildContext,
    ChangeLogEntry,
    PollingChange,
    PollingResult,
    RemoteConfig,
    RevisionState,
)
from bitbucket_scm.scm.models import R_HEADS, BranchSpec

logger = logging.getLogger(__name__)

# git log record/field separators used for changelog files
_RECORD = "\x1e"
_FIELD = "\x1f"
_LOG_FORMAT = f"--format={_RECORD}%H{_FIELD}%an{_FIELD}%ae{_FIELD}%aI{_FIELD}%B{_FIELD}"

GitRunner = Callable[..., str]


class GitCommandError(Exception):
    """A git invocation failed."""

    def __init__(self, args: list[str], returncode: int, stderr: str) -> None:
        self.command = args
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"git {' '.join(args)} exited {returncode}: {stderr.strip()[:200]}")


@runtime_checkable
class GitExtension(Protocol):
    """Hook run against the workspace before each checkout."""

    def before_checkout(self, workspace: Path, run: GitRunner) -> None: ...


class CleanBeforeCheckout:
    """Removes untracked and ignored files before checking out."""

    def before_checkout(self, workspace: Path, run: GitRunner) -> None:
        run("clean", "-fdx", cwd=workspace)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, CleanBeforeCheckout)

    def __hash__(self) -> int:
        return hash(CleanBeforeCheckout)


def _spec_matches(spec: BranchSpec, ref: str) -> bool:
    """Match a remote ref against a branch spec (``refs/...``, ``*/name``, bare name, ``:regex``)."""
    name = spec.name.strip()
    if name.startswith(":"):
        return re.fullmatch(name[1:], ref) is not None
    if name.startswith("*/"):
        name = name[2:]
    if not name.startswith("refs/"):
        name = f"{R_HEADS}{name}"
    return fnmatch.fnmatchcase(ref, name)


class GitChangeLogParser:
    """Parses changelog files written by GitEngine.checkout."""

    def parse(self, changelog_file: Path) -> list[ChangeLogEntry]:
        if not changelog_file.exists():
            return []
        entries = []
        for record in changelog_file.read_text(encoding="utf-8").split(_RECORD):
            if not record.strip():
                continue
            commit, author, email, date, message, files = (record.split(_FIELD) + [""] * 6)[:6]
            entries.append(
                ChangeLogEntry(
                    commit=commit.strip(),
                    author=author,
                    author_email=email,
                    timestamp=datetime.fromisoformat(date) if date else None,
                    message=message.strip(),
                    paths=[line for line in files.splitlines() if line.strip()],
                )
            )
        return entries


class GitEngine:
    """Checks out one remote with the git CLI.

    Uses subprocess + git directly, one process per operation.
    """

    def __init__(
        self,
        remote: RemoteConfig,
        branches: list[BranchSpec] | None = None,
        extensions: list[Any] | None = None,
        browser: StashBrowser | None = None,
        git_tool: str = "git",
        timeout: int = 600,
    ) -> None:
        self.remote = remote
        self.branches = list(branches or [])
        self.extensions = list(extensions or [])
        self.browser = browser
        self.git_tool = git_tool
        self.timeout = timeout

    def _run(self, *args: str, cwd: Path | None = None) -> str:
        """Run a git command and return stdout."""
        command = [self.git_tool, *args]
        try:
            result = subprocess.run(
                command,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise GitCommandError(list(args), -1, f"{self.git_tool} not found") from e
        except subprocess.TimeoutExpired as e:
            raise GitCommandError(list(args), -1, f"timed out after {self.timeout}s") from e
        if result.returncode != 0:
            raise GitCommandError(list(args), result.returncode, result.stderr)
        return result.stdout.strip()

    def _remote_refs(self) -> dict[str, str]:
        if not self.remote.url:
            raise GitCommandError(["ls-remote"], -1, "remote URL is empty")
        output = self._run("ls-remote", "--heads", "--tags", self.remote.url)
        refs: dict[str, str] = {}
        for line in output.splitlines():
            sha, _, ref = line.partition("\t")
            if ref and not ref.endswith("^{}"):
                refs[ref] = sha
        return refs

    def _select_revision(self) -> RevisionState:
        """First remote ref, in branch spec order, that matches a spec."""
        refs = self._remote_refs()
        specs = self.branches or [BranchSpec(name="**")]
        for spec in specs:
            for ref in sorted(refs):
                if _spec_matches(spec, ref):
                    return RevisionState(commit=refs[ref], branch=ref)
        wanted = ", ".join(s.name for s in specs)
        raise GitCommandError(["ls-remote"], -1, f"no remote ref matches {wanted}")

    def checkout(
        self,
        build: BuildContext,
        workspace: Path,
        changelog_file: Path | None = None,
        baseline: RevisionState | None = None,
    ) -> RevisionState:
        workspace.mkdir(parents=True, exist_ok=True)
        if not (workspace / ".git").exists():
            self._run("init", cwd=workspace)
        for extension in self.extensions:
            extension.before_checkout(workspace, self._run)

        revision = self._select_revision()
        short = revision.branch.removeprefix("refs/").split("/", 1)[-1]
        logger.info(
            "Checking out %s (%s) from %s", revision.branch, revision.commit, self.remote.url
        )
        self._run(
            "fetch",
            "--force",
            self.remote.url,
            f"+{revision.branch}:refs/remotes/{self.remote.name}/{short}",
            cwd=workspace,
        )
        self._run("checkout", "--force", revision.commit, cwd=workspace)

        if changelog_file is not None:
            changelog = ""
            if baseline is not None and baseline.commit and baseline.commit != revision.commit:
                changelog = self._run(
                    "log", _LOG_FORMAT, "--name-only",
                    f"{baseline.commit}..{revision.commit}",
                    cwd=workspace,
                )
            changelog_file.write_text(changelog, encoding="utf-8")
        return revision

    def calc_revisions_from_build(
        self, build: BuildContext, workspace: Path | None = None
    ) -> RevisionState | None:
        if build.revision is not None:
            return build.revision
        if workspace is None or not (workspace / ".git").exists():
            return None
        return RevisionState(commit=self._run("rev-parse", "HEAD", cwd=workspace))

    def compare_remote_revision_with(self, baseline: RevisionState | None) -> PollingResult:
        remote = self._select_revision()
        if baseline is None or baseline.commit != remote.commit:
            return PollingResult(change=PollingChange.SIGNIFICANT, remote=remote)
        return PollingResult(change=PollingChange.NONE, remote=remote)

    def build_environment(self, build: BuildContext, env: dict[str, str]) -> None:
        env["GIT_URL"] = self.remote.url
        if build.revision is not None:
            env["GIT_COMMIT"] = build.revision.commit
            if build.revision.branch:
                env["GIT_BRANCH"] = build.revision.branch
        if build.previous_revision is not None:
            env["GIT_PREVIOUS_COMMIT"] = build.previous_revision.commit

    def create_changelog_parser(self) -> GitChangeLogParser:
        return GitChangeLogParser()

"""Contract between the SCM adapter and the full checkout engine it delegates to."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from bitbucket_scm.scm.models import BranchSpec

if TYPE_CHECKING:
    from bitbucket_scm.scm.browser import StashBrowser


class RemoteConfig(BaseModel):
    """Where the engine fetches from: URL, local remote name and credential."""

    model_config = ConfigDict(frozen=True)

    url: str
    name: str
    credential_id: str | None = None


class RevisionState(BaseModel):
    model_config = ConfigDict(frozen=True)

    commit: str
    branch: str = ""


class BuildContext(BaseModel):
    """What the orchestrator knows about the run being checked out."""

    number: int = 0
    revision: RevisionState | None = None
    previous_revision: RevisionState | None = None


class PollingChange(str, Enum):
    NONE = "none"
    SIGNIFICANT = "significant"


class PollingResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    change: PollingChange
    remote: RevisionState | None = None


class ChangeLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    commit: str
    author: str
    author_email: str = ""
    timestamp: datetime | None = None
    message: str = ""
    paths: list[str] = Field(default_factory=list)


@runtime_checkable
class ChangeLogParser(Protocol):
    def parse(self, changelog_file: Path) -> list[ChangeLogEntry]: ...


@runtime_checkable
class VcsEngine(Protocol):
    """A fully configured version-control engine able to check out one remote."""

    remote: RemoteConfig
    branches: list[BranchSpec]
    extensions: list[Any]
    browser: StashBrowser | None

    def checkout(
        self,
        build: BuildContext,
        workspace: Path,
        changelog_file: Path | None = None,
        baseline: RevisionState | None = None,
    ) -> RevisionState: ...

    def calc_revisions_from_build(
        self, build: BuildContext, workspace: Path | None = None
    ) -> RevisionState | None: ...

    def compare_remote_revision_with(self, baseline: RevisionState | None) -> PollingResult: ...

    def build_environment(self, build: BuildContext, env: dict[str, str]) -> None: ...

    def create_changelog_parser(self) -> ChangeLogParser: ...


EngineFactory = Callable[
    [RemoteConfig, list[BranchSpec], list[Any], "StashBrowser | None", "str | None"],
    VcsEngine,
]

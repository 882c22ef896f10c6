"""SCM adapter that delegates checkout work to a full VCS engine."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

from bitbucket_scm.scm.browser import StashBrowser
from bitbucket_scm.scm.engine import (
    BuildContext,
    ChangeLogParser,
    PollingResult,
    RevisionState,
    VcsEngine,
)
from bitbucket_scm.scm.models import (
    BranchSpec,
    RepositoryReference,
    RepositoryResolution,
    ScmConfig,
)

if TYPE_CHECKING:
    from bitbucket_scm.scm.resolver import RepositoryResolver


class ScmAdapter:
    """A job's Bitbucket Server SCM.

    Built by RepositoryResolver.build_adapter; instances are never mutated.
    Only one repository is supported per adapter. Multi-repository support
    would replace ``repository`` with a sequence of resolutions.
    """

    __slots__ = ("_config", "_repository", "_engine")

    def __init__(
        self,
        config: ScmConfig,
        repository: RepositoryResolution,
        engine: VcsEngine,
    ) -> None:
        if engine is None:
            raise ValueError("ScmAdapter requires a VCS engine")
        self._config = config
        self._repository = repository
        self._engine = engine

    @property
    def id(self) -> str:
        return self._config.id

    @property
    def config(self) -> ScmConfig:
        return self._config

    @property
    def repository(self) -> RepositoryResolution:
        return self._repository

    @property
    def reference(self) -> RepositoryReference:
        return self._repository.reference

    @property
    def engine(self) -> VcsEngine:
        return self._engine

    @property
    def branches(self) -> list[BranchSpec]:
        return list(self._engine.branches)

    @property
    def extensions(self) -> list[Any]:
        return list(self._engine.extensions)

    @property
    def git_tool(self) -> str | None:
        return self._config.git_tool

    @property
    def credential_id(self) -> str | None:
        return self.reference.credential_id

    @property
    def ssh_credential_id(self) -> str | None:
        return self.reference.ssh_credential_id

    @property
    def server_id(self) -> str:
        return self.reference.server_id

    @property
    def project_key(self) -> str:
        return self.reference.project_key

    @property
    def project_name(self) -> str:
        return self.reference.configured_project_name

    @property
    def repository_name(self) -> str:
        return self.reference.repository_name

    @property
    def repository_slug(self) -> str:
        return self.reference.repository_slug

    @property
    def mirror_name(self) -> str:
        return self.reference.mirror_name

    @property
    def browser(self) -> StashBrowser | None:
        return self._engine.browser

    def checkout(
        self,
        build: BuildContext,
        workspace: Path,
        changelog_file: Path | None = None,
        baseline: RevisionState | None = None,
    ) -> RevisionState:
        return self._engine.checkout(build, workspace, changelog_file, baseline)

    def calc_revisions_from_build(
        self, build: BuildContext, workspace: Path | None = None
    ) -> RevisionState | None:
        return self._engine.calc_revisions_from_build(build, workspace)

    def compare_remote_revision_with(self, baseline: RevisionState | None) -> PollingResult:
        return self._engine.compare_remote_revision_with(baseline)

    def build_environment(self, build: BuildContext, env: dict[str, str]) -> None:
        self._engine.build_environment(build, env)

    def create_changelog_parser(self) -> ChangeLogParser:
        return self._engine.create_changelog_parser()

    def to_config(self) -> ScmConfig:
        """Configuration to persist, using the names the server last reported."""
        return self._config.model_copy(
            update={
                "credential_id": self.credential_id,
                "ssh_credential_id": self.ssh_credential_id,
                "project_name": self.project_name,
                "repository_name": self.repository_name,
                "server_id": self.server_id,
                "mirror_name": self.mirror_name,
            }
        )

    def regenerate(self, resolver: RepositoryResolver) -> ScmAdapter:
        """Look the repository up again so renamed projects and new clone URLs are picked up."""
        return resolver.build_adapter(self.to_config())

    def __repr__(self) -> str:
        return (
            f"ScmAdapter(id={self.id!r}, server={self.server_id!r}, "
            f"repository={self.project_key}/{self.repository_slug})"
        )

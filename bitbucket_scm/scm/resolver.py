"""Turns persisted SCM configuration into a checkout-ready repository."""

from __future__ import annotations

import logging
from typing import Any

from bitbucket_scm.client.base import ClientFactory
from bitbucket_scm.client.errors import BitbucketClientError, NotFoundError
from bitbucket_scm.client.models import BitbucketRepository, NamedLink
from bitbucket_scm.config.models import PluginConfiguration, ServerConfig
from bitbucket_scm.credentials.base import CredentialResolver
from bitbucket_scm.scm.adapter import ScmAdapter
from bitbucket_scm.scm.browser import StashBrowser, repository_url_from_self_link
from bitbucket_scm.scm.engine import EngineFactory, RemoteConfig, VcsEngine
from bitbucket_scm.scm.mirror import MirrorFetchError, MirrorFetchRequest, MirrorResolver
from bitbucket_scm.scm.models import (
    BranchSource,
    BranchSpec,
    CloneEndpoint,
    CloneProtocol,
    PlaceholderReason,
    PlaceholderRepository,
    RepositoryReference,
    RepositoryResolution,
    ResolvedRepository,
    ScmConfig,
)

logger = logging.getLogger(__name__)


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def select_clone_endpoint(
    clone_urls: list[NamedLink], ssh_credential_id: str | None
) -> CloneEndpoint:
    """Pick the SSH link when an SSH credential is configured, HTTP otherwise.

    A missing link yields an empty URL; the checkout fails later with the
    engine's own diagnostics.
    """
    protocol = CloneProtocol.HTTP if _blank(ssh_credential_id) else CloneProtocol.SSH
    url = next((link.href for link in clone_urls if link.name == protocol.value), "")
    return CloneEndpoint(protocol=protocol, url=url)


class RepositoryResolver:
    """Resolves (server, project, repository, mirror) names against the live server.

    Resolution never raises: unknown servers, blank names and remote failures
    all produce a PlaceholderRepository so configuration stays constructible.
    """

    def __init__(
        self,
        configuration: PluginConfiguration,
        client_factory: ClientFactory,
        credential_resolver: CredentialResolver,
        mirror_resolver: MirrorResolver | None = None,
        engine_factory: EngineFactory | None = None,
    ) -> None:
        self._configuration = configuration
        self._client_factory = client_factory
        self._credentials = credential_resolver
        self._mirrors = mirror_resolver or MirrorResolver(client_factory, credential_resolver)
        self._engine_factory = engine_factory or self._git_engine

    def resolve(
        self,
        server_id: str | None,
        project_name: str | None,
        repository_name: str | None,
        mirror_name: str | None = None,
        credential_id: str | None = None,
        ssh_credential_id: str | None = None,
    ) -> RepositoryResolution:
        names: dict[str, Any] = {
            "server_id": server_id,
            "project_name": project_name,
            "repository_name": repository_name,
            "mirror_name": mirror_name,
            "credential_id": credential_id,
            "ssh_credential_id": ssh_credential_id,
        }
        server = self._configuration.get_server_by_id(server_id)
        if server is None:
            logger.info("No Bitbucket Server configuration for serverId %s", server_id)
            return self._placeholder(PlaceholderReason.UNKNOWN_SERVER, **names)
        if _blank(project_name):
            logger.info("Error creating the Bitbucket SCM: The project name is blank")
            return self._placeholder(PlaceholderReason.BLANK_PROJECT, **names)
        if _blank(repository_name):
            logger.info("Error creating the Bitbucket SCM: The repository name is blank")
            return self._placeholder(PlaceholderReason.BLANK_REPOSITORY, **names)

        if not _blank(mirror_name):
            return self._resolve_mirrored(server, names)
        return self._resolve_direct(server, names)

    def _resolve_mirrored(self, server: ServerConfig, names: dict[str, Any]) -> RepositoryResolution:
        request = MirrorFetchRequest(
            server_url=server.base_url,
            credential_id=names["credential_id"],
            global_credential_id=server.admin_credential_id,
            project_name=names["project_name"],
            repository_name=names["repository_name"],
            mirror_name=names["mirror_name"],
        )
        try:
            mirrored = self._mirrors.fetch_repository(request)
        except MirrorFetchError as e:
            logger.info(
                "Query Bitbucket for project [%s] repo [%s] mirror [%s] failed: %s",
                request.project_name,
                request.repository_name,
                request.mirror_name,
                e,
            )
            return self._placeholder(
                PlaceholderReason.MIRROR_UNAVAILABLE, retryable=e.retryable, **names
            )
        details = mirrored.mirroring_details
        return self._resolved(
            mirrored.repository,
            clone_urls=details.clone_urls,
            server_id=server.id,
            mirror_name=details.mirror_name or names["mirror_name"],
            credential_id=names["credential_id"],
            ssh_credential_id=names["ssh_credential_id"],
        )

    def _resolve_direct(self, server: ServerConfig, names: dict[str, Any]) -> RepositoryResolution:
        credential = self._credentials.resolve(server.admin_credential_id)
        if credential is None:
            credential = self._credentials.resolve(names["credential_id"])
        try:
            client = self._client_factory.get_client(server.base_url, credential)
        except BitbucketClientError as e:
            logger.info("Bitbucket client for server %s unavailable: %s", server.id, e)
            return self._placeholder(PlaceholderReason.REMOTE_ERROR, **names)
        try:
            repository = client.get_repository(names["project_name"], names["repository_name"])
        except NotFoundError as e:
            logger.info("Bitbucket repository lookup found nothing: %s", e)
            return self._placeholder(PlaceholderReason.NOT_FOUND, **names)
        except BitbucketClientError as e:
            logger.info("Bitbucket repository lookup failed: %s", e)
            return self._placeholder(
                PlaceholderReason.REMOTE_ERROR, retryable=e.retryable, **names
            )
        finally:
            client.close()
        return self._resolved(
            repository,
            clone_urls=repository.clone_urls,
            server_id=server.id,
            mirror_name="",
            credential_id=names["credential_id"],
            ssh_credential_id=names["ssh_credential_id"],
        )

    def _resolved(
        self,
        repository: BitbucketRepository,
        clone_urls: list[NamedLink],
        server_id: str,
        mirror_name: str,
        credential_id: str | None,
        ssh_credential_id: str | None,
    ) -> ResolvedRepository:
        reference = RepositoryReference(
            credential_id=credential_id,
            ssh_credential_id=ssh_credential_id,
            project_name=repository.project.name,
            project_key=repository.project.key,
            repository_name=repository.name,
            repository_slug=repository.slug,
            server_id=server_id,
            mirror_name=mirror_name,
        )
        return ResolvedRepository(
            reference=reference,
            repository_id=repository.id,
            clone_endpoint=select_clone_endpoint(clone_urls, ssh_credential_id),
            repository_url=repository_url_from_self_link(repository.self_link),
        )

    @staticmethod
    def _placeholder(
        reason: PlaceholderReason,
        server_id: str | None,
        project_name: str | None,
        repository_name: str | None,
        mirror_name: str | None,
        credential_id: str | None,
        ssh_credential_id: str | None,
        retryable: bool = False,
    ) -> PlaceholderRepository:
        project_name = project_name or ""
        repository_name = repository_name or ""
        reference = RepositoryReference(
            credential_id=credential_id,
            ssh_credential_id=ssh_credential_id,
            project_name=project_name,
            project_key=project_name,
            repository_name=repository_name,
            repository_slug=repository_name,
            server_id=server_id or "",
            mirror_name=mirror_name or "",
        )
        return PlaceholderRepository(
            reference=reference,
            clone_endpoint=select_clone_endpoint([], ssh_credential_id),
            reason=reason,
            retryable=retryable,
        )

    def build_adapter(self, config: ScmConfig) -> ScmAdapter:
        """Resolve the configured repository and return a ready-to-use adapter."""
        repository = self.resolve(
            config.server_id,
            config.project_name,
            config.repository_name,
            config.mirror_name,
            config.credential_id,
            config.ssh_credential_id,
        )
        return self._adapter(config, repository)

    def adapter_for_repository(
        self, config: ScmConfig, repository: BitbucketRepository
    ) -> ScmAdapter:
        """Build an adapter for a repository already fetched from the server."""
        resolution = self._resolved(
            repository,
            clone_urls=repository.clone_urls,
            server_id=config.server_id or "",
            mirror_name="",
            credential_id=config.credential_id,
            ssh_credential_id=config.ssh_credential_id,
        )
        return self._adapter(config, resolution)

    def resolve_source(self, source: BranchSource) -> BranchSource:
        """Return the branch source with its repository resolved."""
        repository = self.resolve(
            source.server_id,
            source.project_name,
            source.repository_name,
            source.mirror_name,
            source.credential_id,
            source.ssh_credential_id,
        )
        return source.model_copy(update={"repository": repository})

    def _adapter(self, config: ScmConfig, repository: RepositoryResolution) -> ScmAdapter:
        reference = repository.reference
        engine_credential = (
            reference.credential_id
            if _blank(reference.ssh_credential_id)
            else reference.ssh_credential_id
        )
        remote = RemoteConfig(
            url=repository.clone_endpoint.url,
            name=reference.repository_slug,
            credential_id=engine_credential,
        )
        browser = StashBrowser(repository.repository_url) if repository.repository_url else None
        engine = self._engine_factory(
            remote, list(config.branches), list(config.extensions), browser, config.git_tool
        )
        return ScmAdapter(config, repository, engine)

    def _git_engine(
        self,
        remote: RemoteConfig,
        branches: list[BranchSpec],
        extensions: list[Any],
        browser: StashBrowser | None,
        git_tool: str | None,
    ) -> VcsEngine:
        from bitbucket_scm.git.engine import GitEngine

        return GitEngine(
            remote,
            branches=branches,
            extensions=extensions,
            browser=browser,
            git_tool=git_tool or self._configuration.git.tool,
        )

"""Decides when a job can skip the clone and builds the remote file view if so."""

from __future__ import annotations

import logging

from bitbucket_scm.client.base import ClientFactory
from bitbucket_scm.client.errors import BitbucketClientError
from bitbucket_scm.config.models import PluginConfiguration, ServerConfig, ValidationKind
from bitbucket_scm.credentials.base import CredentialResolver
from bitbucket_scm.filesystem.view import FilesystemView
from bitbucket_scm.scm.adapter import ScmAdapter
from bitbucket_scm.scm.models import (
    BranchSource,
    RepositoryResolution,
    ScmHead,
    ScmRevision,
)

logger = logging.getLogger(__name__)


class LightweightFilesystemProvider:
    """Builds FilesystemViews for SCM adapters and branch sources.

    Returning None is not an error: the caller falls back to a full checkout.
    """

    def __init__(
        self,
        configuration: PluginConfiguration,
        client_factory: ClientFactory,
        credential_resolver: CredentialResolver,
    ) -> None:
        self._configuration = configuration
        self._client_factory = client_factory
        self._credentials = credential_resolver

    def supports(self, scm: object) -> bool:
        """True when the SCM targets exactly one literal branch or tag ref."""
        if not isinstance(scm, ScmAdapter):
            return False
        branches = scm.branches
        return len(branches) == 1 and branches[0].is_literal_ref()

    def supports_source(self, source: object) -> bool:
        return isinstance(source, BranchSource)

    def build(self, scm: object, revision: ScmRevision | None = None) -> FilesystemView | None:
        if not self.supports(scm):
            return None
        server = self._usable_server(scm.server_id)
        if server is None:
            return None
        return self._view(server, scm.repository, scm.branches[0].name.strip(), revision)

    def build_for_source(
        self,
        source: object,
        head: ScmHead | None,
        revision: ScmRevision | None = None,
    ) -> FilesystemView | None:
        if not self.supports_source(source):
            return None
        server = self._usable_server(source.server_id)
        if server is None or source.repository is None:
            return None
        target = revision.head if revision is not None else head
        ref = getattr(target, "ref", None)
        if not ref:
            logger.debug("Lightweight checkout not supported for head %r", target)
            return None
        return self._view(server, source.repository, ref, revision)

    def _usable_server(self, server_id: str | None) -> ServerConfig | None:
        server = self._configuration.get_server_by_id(server_id)
        if server is None:
            logger.debug("No Bitbucket Server configuration for serverId %s", server_id)
            return None
        result = server.validate_config()
        if result.kind == ValidationKind.ERROR:
            logger.debug("Server %s is invalid: %s", server_id, result.message)
            return None
        return server

    def _view(
        self,
        server: ServerConfig,
        repository: RepositoryResolution,
        ref: str,
        revision: ScmRevision | None,
    ) -> FilesystemView | None:
        if repository.is_placeholder:
            logger.debug("Repository %s is unresolved", repository.reference.repository_name)
            return None
        reference = repository.reference
        credential = self._credentials.resolve(reference.credential_id)
        try:
            client = self._client_factory.get_client(server.base_url, credential)
        except BitbucketClientError as e:
            logger.debug("No client for server %s: %s", server.id, e)
            return None
        file_client = client.get_file_path_client(
            reference.project_key, reference.repository_slug
        )
        return FilesystemView(file_client, ref, revision, api_client=client)

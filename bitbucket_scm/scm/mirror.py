"""Mirror lookup for repositories served from a Bitbucket Server mirror."""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict

from bitbucket_scm.client.base import ClientFactory, RemoteApiClient
from bitbucket_scm.client.errors import BitbucketClientError
from bitbucket_scm.client.models import (
    BitbucketRepository,
    MirroredRepository,
    MirroredRepositoryDescriptor,
)
from bitbucket_scm.credentials.base import CredentialResolver

logger = logging.getLogger(__name__)

RepositoryLookup = Callable[[RemoteApiClient, str, str], BitbucketRepository]


def lookup_by_name(client: RemoteApiClient, project_name: str, repository_name: str) -> BitbucketRepository:
    return client.get_repository(project_name, repository_name)


class MirrorFetchError(Exception):
    """Raised when a mirrored repository cannot be fetched."""

    def __init__(self, message: str, retryable: bool = False) -> None:
        self.retryable = retryable
        super().__init__(message)


class MirrorFetchRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    server_url: str
    credential_id: str | None = None
    global_credential_id: str | None = None
    project_name: str
    repository_name: str
    mirror_name: str = ""


class EnrichedMirroredRepository(BaseModel):
    """The upstream repository together with the mirror's view of it."""

    model_config = ConfigDict(frozen=True)

    repository: BitbucketRepository
    mirroring_details: MirroredRepository


class MirrorResolver:
    """Finds a named mirror of a repository and checks that it is usable."""

    def __init__(
        self,
        client_factory: ClientFactory,
        credential_resolver: CredentialResolver,
        repository_lookup: RepositoryLookup = lookup_by_name,
    ) -> None:
        self._client_factory = client_factory
        self._credentials = credential_resolver
        self._lookup = repository_lookup

    def _client(self, request: MirrorFetchRequest) -> RemoteApiClient:
        credential = self._credentials.resolve(request.credential_id)
        if credential is None:
            credential = self._credentials.resolve(request.global_credential_id)
        try:
            return self._client_factory.get_client(request.server_url, credential)
        except BitbucketClientError as e:
            raise MirrorFetchError(
                f"Cannot connect to {request.server_url!r}: {e}", retryable=e.retryable
            ) from e

    def _descriptors(
        self, client: RemoteApiClient, request: MirrorFetchRequest
    ) -> tuple[BitbucketRepository, list[MirroredRepositoryDescriptor]]:
        try:
            repository = self._lookup(client, request.project_name, request.repository_name)
        except BitbucketClientError as e:
            raise MirrorFetchError(
                f"Failed to look up repository {request.project_name}/{request.repository_name}: {e}",
                retryable=e.retryable,
            ) from e
        try:
            descriptors = client.get_mirrored_repository_descriptors(repository.id)
        except BitbucketClientError as e:
            raise MirrorFetchError(
                f"Failed to list mirrors for {request.project_name}/{request.repository_name}: {e}",
                retryable=e.retryable,
            ) from e
        return repository, descriptors

    def fetch_repository(self, request: MirrorFetchRequest) -> EnrichedMirroredRepository:
        client = self._client(request)
        try:
            repository, descriptors = self._descriptors(client, request)
            descriptor = next(
                (d for d in descriptors if d.mirror_server.name == request.mirror_name), None
            )
            if descriptor is None:
                raise MirrorFetchError(
                    f"Mirror {request.mirror_name!r} is not registered for "
                    f"{request.project_name}/{request.repository_name}"
                )
            try:
                mirrored = client.get_mirrored_repository(descriptor)
            except BitbucketClientError as e:
                raise MirrorFetchError(
                    f"Failed to fetch repository details from mirror {request.mirror_name!r}: {e}",
                    retryable=e.retryable,
                ) from e
        finally:
            client.close()

        if not mirrored.available:
            raise MirrorFetchError(
                f"Repository {request.project_name}/{request.repository_name} is not available "
                f"on mirror {request.mirror_name!r} (status {mirrored.status or 'unknown'})"
            )
        return EnrichedMirroredRepository(repository=repository, mirroring_details=mirrored)

    def list_available_mirrors(self, request: MirrorFetchRequest) -> list[str]:
        """Names of the mirrors currently serving the repository."""
        client = self._client(request)
        try:
            _, descriptors = self._descriptors(client, request)
            names = []
            for descriptor in descriptors:
                if not descriptor.mirror_server.enabled:
                    continue
                try:
                    mirrored = client.get_mirrored_repository(descriptor)
                except BitbucketClientError as e:
                    logger.info(
                        "Skipping mirror %s: %s", descriptor.mirror_server.name, e
                    )
                    continue
                if mirrored.available:
                    names.append(descriptor.mirror_server.name)
            return names
        finally:
            client.close()

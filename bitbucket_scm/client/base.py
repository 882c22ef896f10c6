"""Interfaces for talking to a Bitbucket Server instance."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

from bitbucket_scm.client.models import (
    BitbucketRepository,
    DirectoryEntry,
    MirroredRepository,
    MirroredRepositoryDescriptor,
)

if TYPE_CHECKING:
    from bitbucket_scm.credentials.models import Credential


@runtime_checkable
class FilePathClient(Protocol):
    """File content and listing access for one repository, addressed by ref and path."""

    def get_type(self, path: str, ref: str) -> Literal["file", "directory"]: ...

    def list_directory(self, path: str, ref: str) -> list[DirectoryEntry]: ...

    def read_raw(self, path: str, ref: str) -> bytes: ...


@runtime_checkable
class RemoteApiClient(Protocol):
    """Project, repository, mirror and file lookups over the REST surface."""

    def get_repository(self, project_name: str, repository_name: str) -> BitbucketRepository: ...

    def get_repository_by_key(self, project_key: str, repository_slug: str) -> BitbucketRepository: ...

    def get_mirrored_repository_descriptors(
        self, repository_id: int
    ) -> list[MirroredRepositoryDescriptor]: ...

    def get_mirrored_repository(
        self, descriptor: MirroredRepositoryDescriptor
    ) -> MirroredRepository: ...

    def get_file_path_client(self, project_key: str, repository_slug: str) -> FilePathClient: ...

    def close(self) -> None: ...


@runtime_checkable
class ClientFactory(Protocol):
    """Builds a client for a server base URL, authenticated with an optional credential."""

    def get_client(self, base_url: str, credential: Credential | None) -> RemoteApiClient: ...

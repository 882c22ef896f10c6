"""Bitbucket Server REST client."""

from bitbucket_scm.client.base import ClientFactory, FilePathClient, RemoteApiClient
from bitbucket_scm.client.errors import BitbucketClientError, NotFoundError
from bitbucket_scm.client.http import BitbucketClient, BitbucketFilePathClient, HttpClientFactory
from bitbucket_scm.client.models import (
    BitbucketProject,
    BitbucketRepository,
    DirectoryEntry,
    MirroredRepository,
    MirroredRepositoryDescriptor,
    MirrorServer,
    NamedLink,
    RepositoryState,
)

__all__ = [
    "BitbucketClient",
    "BitbucketClientError",
    "BitbucketFilePathClient",
    "BitbucketProject",
    "BitbucketRepository",
    "ClientFactory",
    "DirectoryEntry",
    "FilePathClient",
    "HttpClientFactory",
    "MirroredRepository",
    "MirroredRepositoryDescriptor",
    "MirrorServer",
    "NamedLink",
    "NotFoundError",
    "RemoteApiClient",
    "RepositoryState",
]

"""Shared test fixtures for bitbucket-scm."""

import pytest
from unittest.mock import MagicMock

from bitbucket_scm.client.base import ClientFactory, FilePathClient, RemoteApiClient
from bitbucket_scm.client.models import (
    BitbucketProject,
    BitbucketRepository,
    MirroredRepository,
    MirroredRepositoryDescriptor,
    MirrorServer,
    NamedLink,
)
from bitbucket_scm.config.models import PluginConfiguration, ServerConfig
from bitbucket_scm.credentials.base import CredentialResolver
from bitbucket_scm.scm.engine import VcsEngine
from bitbucket_scm.scm.resolver import RepositoryResolver

SERVER_ID = "SERVER-ID"
BASE_URL = "https://bitbucket.example.com"
HTTP_CLONE_URL = f"{BASE_URL}/scm/project_1/rep_1.git"
SSH_CLONE_URL = "ssh://git@bitbucket.example.com:7999/project_1/rep_1.git"


@pytest.fixture
def server_config():
    return ServerConfig(
        id=SERVER_ID,
        name="Bitbucket",
        base_url=BASE_URL,
        admin_credential_id="admin-token",
    )


@pytest.fixture
def plugin_config(server_config):
    return PluginConfiguration(servers=[server_config])


@pytest.fixture
def sample_repository():
    return BitbucketRepository(
        id=1,
        name="rep_1",
        slug="rep_1",
        project=BitbucketProject(key="PROJECT_1", name="Project 1"),
        clone_urls=[
            NamedLink(name="http", href=HTTP_CLONE_URL),
            NamedLink(name="ssh", href=SSH_CLONE_URL),
        ],
        self_link=f"{BASE_URL}/projects/PROJECT_1/repos/rep_1/browse",
    )


@pytest.fixture
def mirror_descriptor():
    return MirroredRepositoryDescriptor(
        mirror_server=MirrorServer(id="m1", name="mirror-eu"),
        self_link="https://mirror-eu.example.com/rest/mirroring/1.0/repos/1",
    )


@pytest.fixture
def mirrored_repository():
    return MirroredRepository(
        available=True,
        mirror_name="mirror-eu",
        repository_id="1",
        status="AVAILABLE",
        clone_urls=[
            NamedLink(name="http", href="https://mirror-eu.example.com/scm/project_1/rep_1.git"),
            NamedLink(name="ssh", href="ssh://git@mirror-eu.example.com:7999/project_1/rep_1.git"),
        ],
    )


@pytest.fixture
def mock_file_client():
    return MagicMock(spec=FilePathClient)


@pytest.fixture
def mock_client(sample_repository, mirror_descriptor, mirrored_repository, mock_file_client):
    client = MagicMock(spec=RemoteApiClient)
    client.get_repository.return_value = sample_repository
    client.get_mirrored_repository_descriptors.return_value = [mirror_descriptor]
    client.get_mirrored_repository.return_value = mirrored_repository
    client.get_file_path_client.return_value = mock_file_client
    return client


@pytest.fixture
def client_factory(mock_client):
    factory = MagicMock(spec=ClientFactory)
    factory.get_client.return_value = mock_client
    return factory


@pytest.fixture
def credential_resolver():
    resolver = MagicMock(spec=CredentialResolver)
    resolver.resolve.return_value = None
    return resolver


def _make_engine(remote, branches, extensions, browser, git_tool):
    engine = MagicMock(spec=VcsEngine)
    engine.remote = remote
    engine.branches = branches
    engine.extensions = extensions
    engine.browser = browser
    engine.git_tool = git_tool
    return engine


@pytest.fixture
def engine_factory():
    return MagicMock(side_effect=_make_engine)


@pytest.fixture
def resolver(plugin_config, client_factory, credential_resolver, engine_factory):
    return RepositoryResolver(
        plugin_config,
        client_factory,
        credential_resolver,
        engine_factory=engine_factory,
    )

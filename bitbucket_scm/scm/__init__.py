"""Repository resolution and the SCM adapter."""

from bitbucket_scm.scm.adapter import ScmAdapter
from bitbucket_scm.scm.browser import BitbucketLinkType, StashBrowser
from bitbucket_scm.scm.engine import (
    BuildContext,
    ChangeLogEntry,
    PollingChange,
    PollingResult,
    RemoteConfig,
    RevisionState,
    VcsEngine,
)
from bitbucket_scm.scm.mirror import (
    EnrichedMirroredRepository,
    MirrorFetchError,
    MirrorFetchRequest,
    MirrorResolver,
)
from bitbucket_scm.scm.models import (
    PLACEHOLDER_REPOSITORY_ID,
    BranchHead,
    BranchSource,
    BranchSpec,
    CloneEndpoint,
    CloneProtocol,
    PlaceholderReason,
    PlaceholderRepository,
    PullRequestHead,
    RepositoryReference,
    RepositoryResolution,
    ResolvedRepository,
    ScmConfig,
    ScmRevision,
    TagHead,
)
from bitbucket_scm.scm.resolver import RepositoryResolver, select_clone_endpoint

__all__ = [
    "PLACEHOLDER_REPOSITORY_ID",
    "BitbucketLinkType",
    "BranchHead",
    "BranchSource",
    "BranchSpec",
    "BuildContext",
    "ChangeLogEntry",
    "CloneEndpoint",
    "CloneProtocol",
    "EnrichedMirroredRepository",
    "MirrorFetchError",
    "MirrorFetchRequest",
    "MirrorResolver",
    "PlaceholderReason",
    "PlaceholderRepository",
    "PollingChange",
    "PollingResult",
    "PullRequestHead",
    "RemoteConfig",
    "RepositoryReference",
    "RepositoryResolution",
    "RepositoryResolver",
    "ResolvedRepository",
    "RevisionState",
    "ScmAdapter",
    "ScmConfig",
    "ScmRevision",
    "StashBrowser",
    "TagHead",
    "VcsEngine",
    "select_clone_endpoint",
]

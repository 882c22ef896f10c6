"""Credential resolution for Bitbucket Server access."""

from bitbucket_scm.credentials.base import CredentialResolver, EnvCredentialResolver
from bitbucket_scm.credentials.models import Credential

__all__ = [
    "Credential",
    "CredentialResolver",
    "EnvCredentialResolver",
]

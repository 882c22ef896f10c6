"""Credential lookup interface and the environment-backed resolver."""

from __future__ import annotations

import logging
import os
from typing import Protocol, runtime_checkable

from pydantic import SecretStr

from bitbucket_scm.config.models import CredentialConfig
from bitbucket_scm.credentials.models import Credential

logger = logging.getLogger(__name__)


@runtime_checkable
class CredentialResolver(Protocol):
    """Maps a credential id to a usable credential, or None when unknown."""

    def resolve(self, credential_id: str | None) -> Credential | None: ...


class EnvCredentialResolver:
    """Resolves configured credentials by reading secrets from environment variables."""

    def __init__(self, credentials: list[CredentialConfig]) -> None:
        self._credentials = {c.id: c for c in credentials}

    def resolve(self, credential_id: str | None) -> Credential | None:
        if not credential_id:
            return None
        entry = self._credentials.get(credential_id)
        if entry is None:
            logger.debug("No credential configured with id %s", credential_id)
            return None
        secret = os.environ.get(entry.secret_env, "")
        if not secret:
            logger.debug(
                "Credential %s: environment variable %s is not set",
                credential_id,
                entry.secret_env,
            )
            return None
        return Credential(
            id=entry.id,
            kind=entry.kind,
            secret=SecretStr(secret),
            username=entry.username,
        )

"""Locating and reading bitbucket-scm.yaml."""

import logging
import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import PluginConfiguration

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "bitbucket-scm.yaml"

_ENV_REF = re.compile(r"\$\{(\w+)\}")


def candidate_paths(cli_path: str | None = None) -> list[Path]:
    """Config file locations, highest priority first: CLI, project-local, user-global."""
    paths = [Path(CONFIG_FILENAME), Path.home() / ".bitbucket-scm" / "config.yaml"]
    if cli_path:
        explicit = Path(cli_path)
        if not explicit.exists():
            raise ValueError(f"Config file not found: {cli_path}")
        paths.insert(0, explicit)
    return paths


def load_config(cli_path: str | None = None) -> PluginConfiguration:
    """Load the first non-empty config file, or defaults when there is none."""
    for path in candidate_paths(cli_path):
        raw = _read_yaml(path)
        if raw is None:
            continue
        logger.debug("Loading configuration from %s", path)
        try:
            return PluginConfiguration.model_validate(_expand_env_vars(raw))
        except ValidationError as e:
            raise ValueError(f"Invalid config in {path}: {e}") from e
    return PluginConfiguration()


def _read_yaml(path: Path) -> object:
    if not path.is_file():
        return None
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e


def _expand_env_vars(obj: object) -> object:
    """Replace ${VAR} references in string values; unset variables become empty."""
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), obj)
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


# Default YAML template for `bitbucket-scm config init`
DEFAULT_CONFIG_TEMPLATE = """\
# bitbucket-scm.yaml

# Bitbucket Server instances, referenced by id from job configuration
servers:
  - id: "primary"
    name: "Bitbucket Server"
    base_url: "https://bitbucket.example.com"
    admin_credential_id: "admin-token"

# Credentials: secrets are read from the named environment variables
credentials:
  - id: "admin-token"
    kind: "token"                # token | username_password | ssh_key
    secret_env: "BITBUCKET_ADMIN_TOKEN"
  # - id: "build-user"
  #   kind: "username_password"
  #   username: "ci"
  #   secret_env: "BITBUCKET_CI_PASSWORD"

# HTTP transport
http:
  timeout: 30
  retries: 2
  verify_ssl: true

# Full checkout engine
git:
  tool: "git"

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""

from .loader import load_config
from .models import (
    CredentialConfig,
    GitConfig,
    HttpConfig,
    PluginConfiguration,
    ServerConfig,
    ValidationKind,
    ValidationResult,
)

__all__ = [
    "CredentialConfig",
    "GitConfig",
    "HttpConfig",
    "PluginConfiguration",
    "ServerConfig",
    "ValidationKind",
    "ValidationResult",
    "load_config",
]

"""
Vault Configuration — Cipher, verifier and storage settings.

Reads settings from environment variables:
    ENCRYPTION_ALGORITHM    = aes-256-cbc (the only supported cipher)
    VAULT_HASH_ROUNDS       = <int>  PBKDF2 rounds for key credentials
    VAULT_MIN_SECRET_LENGTH = <int>  minimum length for rotated secrets
    UPLOAD_DIR              = <str>  blob path prefix for ciphertext

Security Note:
    This module never sees key material. Only log settings and counts.
"""
import os
import logging

from pydantic import BaseModel, Field, field_validator

from .exceptions import ConfigurationError

logger = logging.getLogger("filevault.vault")

SUPPORTED_ALGORITHM = "aes-256-cbc"
DEFAULT_HASH_ROUNDS = 600_000
DEFAULT_MIN_SECRET_LENGTH = 8
DEFAULT_UPLOAD_DIR = "uploads"


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to ``default``.

    Raises:
        ConfigurationError: If the variable is set but not an integer.
    """
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{name} must be an integer, got {raw!r}"
        ) from exc


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    algorithm: str = Field(default=SUPPORTED_ALGORITHM)
    hash_rounds: int = Field(default=DEFAULT_HASH_ROUNDS, ge=1000)
    min_secret_length: int = Field(default=DEFAULT_MIN_SECRET_LENGTH, ge=1)
    upload_dir: str = Field(default=DEFAULT_UPLOAD_DIR, min_length=1)

    model_config = {"frozen": True}

    @field_validator("algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        """Only AES-256-CBC is supported."""
        v = v.strip().lower()
        if v != SUPPORTED_ALGORITHM:
            raise ValueError(f"Unsupported encryption algorithm: {v}")
        return v

    @field_validator("upload_dir")
    @classmethod
    def strip_upload_dir(cls, v: str) -> str:
        """Normalize the blob prefix (no trailing slash)."""
        v = v.rstrip("/")
        if not v:
            raise ValueError("upload_dir cannot be the root path")
        return v

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Returns:
            Populated VaultConfig instance.
        """
        config = cls(
            algorithm=os.environ.get("ENCRYPTION_ALGORITHM", SUPPORTED_ALGORITHM),
            hash_rounds=_env_int("VAULT_HASH_ROUNDS", DEFAULT_HASH_ROUNDS),
            min_secret_length=_env_int(
                "VAULT_MIN_SECRET_LENGTH", DEFAULT_MIN_SECRET_LENGTH
            ),
            upload_dir=os.environ.get("UPLOAD_DIR", DEFAULT_UPLOAD_DIR),
        )
        logger.debug(
            "Vault config loaded: algorithm=%s hash_rounds=%d min_secret_length=%d",
            config.algorithm, config.hash_rounds, config.min_secret_length,
        )
        return config


_config: VaultConfig | None = None


def get_config() -> VaultConfig:
    """Return the process-wide configuration, loading it from env once."""
    global _config
    if _config is None:
        _config = VaultConfig.from_env()
    return _config


def set_config(config: VaultConfig | None) -> None:
    """Replace the process-wide configuration (``None`` reloads from env)."""
    global _config
    _config = config

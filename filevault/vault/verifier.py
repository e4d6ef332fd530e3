"""
Key Verifier — One-way credentials for vault and file keys.

A KeyCredential is a passlib ``pbkdf2_sha256`` hash string
(``$pbkdf2-sha256$<rounds>$<salt>$<digest>``) with a fresh salt per call.
It proves knowledge of a secret; it never decrypts anything. A secret that
verifies may still fail to open a given file (and that is expected after a
vault key rotation).
"""
import logging

from passlib.hash import pbkdf2_sha256 as _pbkdf2

from .config import get_config
from .exceptions import WeakSecret
from .material import SecretLike, secret_text

logger = logging.getLogger("filevault.vault")


def hash_secret(secret: SecretLike, rounds: int | None = None) -> str:
    """Hash a secret for credential storage with PBKDF2-SHA256.

    Output differs on every call (random salt); every output verifies the
    same secret.

    Args:
        secret: Secret as ``str`` or ``KeyMaterial``.
        rounds: PBKDF2 iteration count; defaults to ``VaultConfig.hash_rounds``.

    Returns:
        Self-describing passlib hash string.
    """
    if rounds is None:
        rounds = get_config().hash_rounds
    return _pbkdf2.using(rounds=rounds).hash(secret_text(secret))


def verify_secret(secret: SecretLike, credential: str) -> bool:
    """
    Constant-time verification of a secret against a credential produced
    by :func:`hash_secret`. A malformed credential never verifies.
    """
    try:
        return _pbkdf2.verify(secret_text(secret), credential)
    except (ValueError, TypeError):
        logger.warning("Stored key credential is malformed; verification refused")
        return False


def require_secret(secret: SecretLike | None) -> None:
    """Reject empty secrets before they reach any primitive.

    Raises:
        WeakSecret: If ``secret`` is ``None`` or empty.
    """
    if secret is None or not secret:
        raise WeakSecret("Key is required")


def check_secret_strength(secret: SecretLike | None, min_length: int | None = None) -> None:
    """Enforce the minimum-length policy for new secrets.

    Raises:
        WeakSecret: If ``secret`` is empty or shorter than ``min_length``
            (default ``VaultConfig.min_secret_length``).
    """
    require_secret(secret)
    if min_length is None:
        min_length = get_config().min_secret_length
    if len(secret) < min_length:
        raise WeakSecret(f"Key must be at least {min_length} characters long")

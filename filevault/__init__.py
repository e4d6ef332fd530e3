"""FileVault: encrypted file storage for named vaults."""
from .version import __version__

__all__ = ["__version__"]

"""
Qobuz API Layer.

This package handles all communication with the Qobuz catalog API and the
pool of user tokens used to authenticate it.
"""

from .client import QobuzCatalogClient, select_format
from .credentials import CredentialPool

__all__ = ["CredentialPool", "QobuzCatalogClient", "select_format"]

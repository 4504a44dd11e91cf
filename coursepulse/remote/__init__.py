"""
Remote backends the store can be seeded from and mirrored to.
"""

from .rest_client import RestRemoteClient

__all__ = [
    "RestRemoteClient",
]

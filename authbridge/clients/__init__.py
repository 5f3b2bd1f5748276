"""Expose constructed client wrappers."""

from .hydra import HydraAdminClient, HydraPublicClient
from .kratos import KratosSessionClient

__all__ = [
    "HydraAdminClient",
    "HydraPublicClient",
    "KratosSessionClient",
]

# Blockchain adapters package

from app.adapters.base import AdapterCapability, BlockchainAdapter, BlockchainAdapterError
from app.adapters.registry import AdapterRegistry, AdapterRegistryError, registry

__all__ = [
    "AdapterCapability",
    "BlockchainAdapter",
    "BlockchainAdapterError",
    "AdapterRegistry",
    "AdapterRegistryError",
    "registry",
]

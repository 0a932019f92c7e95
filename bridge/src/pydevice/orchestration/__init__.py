from .registry import DictAdapterRegistry, default_registry

__all__ = ["DictAdapterRegistry", "default_registry"]

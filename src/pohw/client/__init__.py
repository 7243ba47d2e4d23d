from .discovery import RegistryDiscovery  # noqa: F401
from .registry import RegistryClient  # noqa: F401

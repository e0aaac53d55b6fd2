from .cache import ResolutionCache, cache_key_for
from .expansion import ExpandedRole
from .permission_registry import PermissionRegistry
from .resolver import PermissionResolver
from .role_registry import RoleRegistry

__all__ = [
    "ExpandedRole",
    "PermissionRegistry",
    "PermissionResolver",
    "ResolutionCache",
    "RoleRegistry",
    "cache_key_for",
]

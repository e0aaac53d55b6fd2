from .base import Base
from .role import Role
from .permission import Permission

__all__ = [
    "Base",
    "Role",
    "Permission",
]

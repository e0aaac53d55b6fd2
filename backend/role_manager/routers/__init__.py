from . import permissions, roles

__all__ = ["permissions", "roles"]

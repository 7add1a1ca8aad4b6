from .base import Base
from .role import Role
from .permission import Permission
from .role_permission import RolePermission

__all__ = [
    "Base",
    "Role",
    "Permission",
    "RolePermission",
]

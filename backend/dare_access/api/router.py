from fastapi import APIRouter

from ..config import settings
from .admin import permissions as admin_permissions
from .admin import role_permissions as admin_role_permissions
from .admin import roles as admin_roles

router = APIRouter(prefix=settings.api_prefix.rstrip("/"))

_admin_routers = [
    admin_permissions.router,
    admin_roles.router,
    admin_role_permissions.router,
]

for _router in _admin_routers:
    router.include_router(_router)

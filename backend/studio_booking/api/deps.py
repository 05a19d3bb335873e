"""
Shared route dependencies: the acting user and role guards.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.exceptions import Forbidden, NotAuthenticated
from studio_booking.core.logging import bind_actor
from studio_booking.core.security import get_current_user_id
from studio_booking.db.session import get_db
from studio_booking.models.user import User, UserRole


async def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the token subject to an active user and tag the request logs with it."""
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise NotAuthenticated("Unknown or inactive user")

    bind_actor(user.id, user.role)
    return user


def require_roles(*roles: UserRole):
    allowed = {role.value for role in roles}

    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise Forbidden(details={"required_roles": sorted(allowed), "role": user.role})
        return user

    return checker


require_staff = require_roles(UserRole.STAFF)
require_class_manager = require_roles(UserRole.STAFF, UserRole.INSTRUCTOR)

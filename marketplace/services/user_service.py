"""Profile helpers working through the persistence gateway."""

from datetime import datetime

from marketplace.constants import SCHOOL_LEVELS, ActivityType
from marketplace.errors import ValidationError
from marketplace.models import User
from marketplace.schemas import ProfileUpdate, UserRegister
from marketplace.services.activity_log import ActivityLogService
from marketplace.services.gateway import PersistenceGateway


def _check_school_level(school_level):
    if school_level is not None and school_level not in SCHOOL_LEVELS:
        raise ValidationError(f"Unknown school level: {school_level}")


async def register_user(gateway: PersistenceGateway, user_id: str, data: UserRegister):
    """Create the profile for an identity-provider user; returns ``(user, created)``."""
    user = await gateway.get_user(user_id)
    if user:
        return user, False

    _check_school_level(data.school_level)
    user = User(
        id=user_id,
        name=data.name,
        email=data.email,
        role="user",
        region=data.region,
        country=data.country,
        school_level=data.school_level,
        department=data.department,
        created_at=datetime.utcnow(),
        last_login=datetime.utcnow(),
    )
    await gateway.add_user(user)
    await ActivityLogService(gateway).record(
        ActivityType.USER_REGISTERED,
        f"New user registered: {user.email}",
        user_id=user.id,
        user_name=user.name,
        user_email=user.email,
    )
    await gateway.commit()
    return user, True


async def update_profile(gateway: PersistenceGateway, user: User, data: ProfileUpdate) -> User:
    changes = data.model_dump(exclude_unset=True)
    _check_school_level(changes.get("school_level"))
    if not changes:
        return user

    for field, value in changes.items():
        setattr(user, field, value)
    await ActivityLogService(gateway).record(
        ActivityType.USER_UPDATED,
        f"Profile updated: {', '.join(sorted(changes))}",
        user_id=user.id,
        user_name=user.name,
        user_email=user.email,
    )
    await gateway.commit()
    return user

from fastapi import APIRouter, Depends

from marketplace.api.deps import get_current_user, get_gateway, get_identity
from marketplace.models import User
from marketplace.schemas import ProfileUpdate, UserOut, UserRegister
from marketplace.services import user_service
from marketplace.services.gateway import SqlGateway

router = APIRouter()


@router.post("/register")
async def register_user(
    data: UserRegister,
    user_id: str = Depends(get_identity),
    gateway: SqlGateway = Depends(get_gateway),
):
    """Create the local profile for an authenticated identity."""
    user, created = await user_service.register_user(gateway, user_id, data)
    if not created:
        return {"message": "👤 User already exists", "id": user.id}
    return {"message": "✅ User registered", "id": user.id}


@router.get("/profile", response_model=UserOut)
async def get_profile(user: User = Depends(get_current_user)):
    return user


@router.patch("/profile", response_model=UserOut)
async def update_profile(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    gateway: SqlGateway = Depends(get_gateway),
):
    return await user_service.update_profile(gateway, user, data)

from fastapi import Depends, HTTPException, status

from src.crud.userService import current_active_user
from src.models.userModel import User
from src.models.providerModel import Provider


# Ensure only superusers/admins can access
def require_admin(user: User = Depends(current_active_user)) -> User:
    if not (user.is_superuser or "admin" in user.roles):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    return user


def require_provider(user: User = Depends(current_active_user)) -> User:
    if "provider" not in user.roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Provider account required")
    return user


async def current_provider(user: User = Depends(require_provider)) -> Provider:
    """The Provider record behind the calling user"""
    provider = await Provider.find_one({"user_id": user.id})
    if not provider:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider profile not found")
    return provider

# app/api/v1/users.py
from fastapi import APIRouter, Depends

from app.api.auth import get_current_user
from app.api.dependencies import get_service
from app.models.user import User
from app.schemas import PartnerIdentity
from app.services.directory_service import DirectoryService

router = APIRouter()


@router.get("/me", response_model=PartnerIdentity)
async def read_current_user(current_user: User = Depends(get_current_user)):
    """
    Get the caller's own directory identity
    """
    return DirectoryService.to_identity(current_user)


@router.get("/by-email/{email}", response_model=PartnerIdentity)
async def get_user_by_email(
    email: str,
    current_user: User = Depends(get_current_user),
    directory: DirectoryService = Depends(get_service(DirectoryService))
):
    """
    Resolve a user by email
    """
    return directory.resolve_partner(email)


@router.get("/by-id/{user_id}", response_model=PartnerIdentity)
async def get_user_by_id(
    user_id: str,
    current_user: User = Depends(get_current_user),
    directory: DirectoryService = Depends(get_service(DirectoryService))
):
    """
    Resolve a user by identity-provider id
    """
    return directory.resolve_partner(user_id)

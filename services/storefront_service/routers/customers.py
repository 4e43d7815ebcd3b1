"""Customer profile and address book router."""

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.storefront_service.schemas import (
    AddressCreate,
    AddressResponse,
    AddressUpdate,
    ProfileResponse,
    ProfileUpdate,
)
from services.storefront_service.services import address_resolver
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


# ============================================================================
# PROFILE
# ============================================================================


@router.get("/profile", response_model=ProfileResponse)
async def get_my_profile(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Get the current user's profile, creating it on first visit."""
    return await address_resolver.ensure_profile(
        db, current_user.user_id, current_user.email or ""
    )


@router.patch("/profile", response_model=ProfileResponse)
async def update_my_profile(
    profile_in: ProfileUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    await address_resolver.ensure_profile(
        db, current_user.user_id, current_user.email or ""
    )
    return await address_resolver.update_profile(
        db, current_user.user_id, profile_in.model_dump(exclude_unset=True)
    )


# ============================================================================
# ADDRESSES
# ============================================================================


@router.get("/addresses", response_model=list[AddressResponse])
async def list_my_addresses(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """List saved addresses, default first."""
    return await address_resolver.list_addresses(db, current_user.user_id)


@router.post(
    "/addresses", response_model=AddressResponse, status_code=status.HTTP_201_CREATED
)
async def create_my_address(
    address_in: AddressCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    fields = address_in.model_dump(exclude={"is_default"}, exclude_none=True)
    return await address_resolver.create_address(
        db, current_user.user_id, fields, make_default=address_in.is_default
    )


@router.patch("/addresses/{address_id}", response_model=AddressResponse)
async def update_my_address(
    address_id: int,
    address_in: AddressUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await address_resolver.update_address(
        db, current_user.user_id, address_id, address_in.model_dump(exclude_unset=True)
    )


@router.post("/addresses/{address_id}/default", response_model=AddressResponse)
async def set_my_default_address(
    address_id: int,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await address_resolver.set_default_address(
        db, current_user.user_id, address_id
    )


@router.delete("/addresses/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_address(
    address_id: int,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete an address; another one becomes default if needed."""
    await address_resolver.delete_address(db, current_user.user_id, address_id)

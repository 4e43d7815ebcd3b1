"""Profile completeness checks and delivery address selection.

The default-address flag is moved with two ordered UPDATE statements (clear
the others, then set the target) so the one-default-per-user index never sees
two defaults, whatever order the ORM would have flushed in.
"""

from typing import Any, Optional

from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.storefront_service.errors import (
    AddressNotFound,
    IncompleteProfile,
    ProfileNotFound,
)
from services.storefront_service.models import Address, Profile, Purchase
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

REQUIRED_PROFILE_FIELDS = ("first_name", "last_name", "phone_number")
ADDRESS_FIELD = "address"
PROFILE_NAME_FIELDS = ("first_name", "last_name")

EDITABLE_ADDRESS_FIELDS = (
    "address_name",
    "address_line1",
    "address_line2",
    "purok",
    "barangay",
    "city",
    "state_province",
    "postal_code",
    "country",
    "phone_number",
)
EDITABLE_PROFILE_FIELDS = (
    "first_name",
    "middle_name",
    "last_name",
    "phone_number",
    "location",
)


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


async def get_profile(db: AsyncSession, user_id: str) -> Profile:
    profile = await db.get(Profile, user_id, populate_existing=True)
    if not profile:
        raise ProfileNotFound(user_id)
    return profile


async def ensure_profile(db: AsyncSession, user_id: str, email: str) -> Profile:
    """Return the user's profile, creating an empty one on first visit."""
    profile = await db.get(Profile, user_id)
    if profile:
        return profile
    profile = Profile(id=user_id, email=email)
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    logger.info("Created profile for user %s", user_id)
    return profile


def missing_profile_fields(profile: Optional[Profile]) -> list[str]:
    if profile is None:
        return list(REQUIRED_PROFILE_FIELDS)
    return [field for field in REQUIRED_PROFILE_FIELDS if _blank(getattr(profile, field))]


async def require_shipping_details(
    db: AsyncSession, user_id: str, address_id: Optional[int] = None
) -> tuple[Profile, Optional[Address]]:
    """Return the profile and the address to ship to for a new order.

    Raises IncompleteProfile naming every missing field at once, including
    ``address`` when there is neither a saved address nor a profile location.
    An ``address_id`` that is not the user's raises AddressNotFound.
    """
    profile = await db.get(Profile, user_id, populate_existing=True)
    missing = missing_profile_fields(profile)

    address = await resolve_address(db, user_id, address_id)
    has_location = profile is not None and not _blank(profile.location)
    if address is None and not has_location:
        missing.append(ADDRESS_FIELD)

    if missing:
        raise IncompleteProfile(user_id, missing)
    return profile, address


async def update_profile(
    db: AsyncSession, user_id: str, changes: dict[str, Any]
) -> Profile:
    """Apply profile edits; a name change is mirrored into every saved address."""
    profile = await get_profile(db, user_id)
    old_name = profile.full_name

    for field, value in changes.items():
        if field in EDITABLE_PROFILE_FIELDS:
            setattr(profile, field, value)

    if profile.full_name != old_name:
        await db.execute(
            update(Address)
            .where(Address.user_id == user_id)
            .values(recipient_name=profile.full_name)
            .execution_options(synchronize_session="fetch")
        )

    await db.commit()
    await db.refresh(profile)
    return profile


# ---------------------------------------------------------------------------
# Address selection
# ---------------------------------------------------------------------------


async def list_addresses(db: AsyncSession, user_id: str) -> list[Address]:
    result = await db.execute(
        select(Address)
        .where(Address.user_id == user_id)
        .order_by(Address.is_default.desc(), Address.created_at, Address.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_address(db: AsyncSession, user_id: str, address_id: int) -> Address:
    address = await db.get(Address, address_id, populate_existing=True)
    if not address or address.user_id != user_id:
        raise AddressNotFound(address_id)
    return address


async def default_address(db: AsyncSession, user_id: str) -> Optional[Address]:
    """The flagged default, else the oldest address, else None."""
    addresses = await list_addresses(db, user_id)
    return addresses[0] if addresses else None


async def resolve_address(
    db: AsyncSession, user_id: str, address_id: Optional[int] = None
) -> Optional[Address]:
    """Address for a new order: the one chosen, or the user's default."""
    if address_id is not None:
        return await get_address(db, user_id, address_id)
    return await default_address(db, user_id)


async def approval_missing_fields(db: AsyncSession, purchase: Purchase) -> list[str]:
    """Re-derive shipping completeness for a purchase at approval time.

    Profile data may have changed since checkout, so the live profile is
    checked rather than the checkout snapshot.
    """
    profile = await db.get(Profile, purchase.user_id, populate_existing=True)
    missing = missing_profile_fields(profile)

    address = None
    if purchase.user_address_id is not None:
        address = await db.get(Address, purchase.user_address_id)
        if address is not None and address.user_id != purchase.user_id:
            address = None
    if address is None:
        address = await default_address(db, purchase.user_id)

    has_location = profile is not None and not _blank(profile.location)
    if address is None and not has_location:
        missing.append(ADDRESS_FIELD)
    return missing


# ---------------------------------------------------------------------------
# Address book
# ---------------------------------------------------------------------------


async def _clear_default(
    db: AsyncSession, user_id: str, keep_id: Optional[int] = None
) -> None:
    stmt = update(Address).where(
        Address.user_id == user_id, Address.is_default.is_(True)
    )
    if keep_id is not None:
        stmt = stmt.where(Address.id != keep_id)
    await db.execute(
        stmt.values(is_default=False).execution_options(synchronize_session="fetch")
    )


async def create_address(
    db: AsyncSession,
    user_id: str,
    fields: dict[str, Any],
    *,
    make_default: bool = False,
) -> Address:
    """Save a new address. The first address a user saves becomes the default."""
    profile = await get_profile(db, user_id)
    existing = await list_addresses(db, user_id)
    make_default = make_default or not existing

    if make_default:
        await _clear_default(db, user_id)

    data = {k: v for k, v in fields.items() if k in EDITABLE_ADDRESS_FIELDS}
    data.setdefault("country", get_settings().DEFAULT_ADDRESS_COUNTRY)
    address = Address(
        user_id=user_id,
        recipient_name=profile.full_name,
        is_default=make_default,
        **data,
    )
    db.add(address)
    await db.commit()
    await db.refresh(address)
    return address


async def update_address(
    db: AsyncSession, user_id: str, address_id: int, changes: dict[str, Any]
) -> Address:
    """Edit postal fields. ``recipient_name`` always follows the profile.

    ``is_default=True`` moves the default here; the default can only be moved,
    never cleared, so a user with addresses always has one.
    """
    address = await get_address(db, user_id, address_id)
    for field, value in changes.items():
        if field in EDITABLE_ADDRESS_FIELDS:
            setattr(address, field, value)
    await db.commit()

    if changes.get("is_default") and not address.is_default:
        return await set_default_address(db, user_id, address_id)
    return await get_address(db, user_id, address_id)


async def set_default_address(
    db: AsyncSession, user_id: str, address_id: int
) -> Address:
    await get_address(db, user_id, address_id)

    await _clear_default(db, user_id, keep_id=address_id)
    await db.execute(
        update(Address)
        .where(Address.id == address_id)
        .values(is_default=True)
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()
    return await get_address(db, user_id, address_id)


async def delete_address(db: AsyncSession, user_id: str, address_id: int) -> None:
    """Delete an address, promoting another one if it was the default."""
    address = await get_address(db, user_id, address_id)
    was_default = address.is_default
    await db.delete(address)
    await db.flush()

    if was_default:
        result = await db.execute(
            select(Address.id)
            .where(Address.user_id == user_id)
            .order_by(Address.created_at, Address.id)
            .limit(1)
        )
        promote_id = result.scalar_one_or_none()
        if promote_id is not None:
            await db.execute(
                update(Address)
                .where(Address.id == promote_id)
                .values(is_default=True)
                .execution_options(synchronize_session="fetch")
            )
            logger.info(
                "Promoted address %s to default for user %s", promote_id, user_id
            )

    await db.commit()

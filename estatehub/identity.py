# Identity resolution between owner profiles and accounts.
# Property.owner_id is an OwnerProfile id; requests, notifications and auth use account ids.
# Every hop between the two goes through IdentityResolver.
from __future__ import annotations

from typing import NewType, Optional

from sqlalchemy.orm import Session

from . import models
from .errors import NotFoundError

AccountId = NewType("AccountId", int)
OwnerProfileId = NewType("OwnerProfileId", int)


class IdentityResolver:
    """Resolves Property -> OwnerProfile -> User and back; never defaults silently."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def owner_account_for(self, property_id: int) -> AccountId:
        prop = self.db.get(models.Property, property_id)
        if prop is None or prop.deleted_at is not None:
            raise NotFoundError("Property not found")
        return self.account_for_profile(OwnerProfileId(prop.owner_id))

    def account_for_profile(self, profile_id: OwnerProfileId) -> AccountId:
        profile = self.db.get(models.OwnerProfile, profile_id)
        if profile is None:
            raise NotFoundError("Owner profile not found")
        account = self.db.get(models.User, profile.user_id)
        if account is None:
            raise NotFoundError("Owner account not found")
        return AccountId(account.id)

    def profile_for_account(self, account_id: AccountId) -> Optional[OwnerProfileId]:
        profile = (
            self.db.query(models.OwnerProfile)
            .filter(models.OwnerProfile.user_id == account_id)
            .first()
        )
        return OwnerProfileId(profile.id) if profile else None

    def require_profile_for_account(self, account_id: AccountId) -> OwnerProfileId:
        profile_id = self.profile_for_account(account_id)
        if profile_id is None:
            raise NotFoundError("Owner profile not found for this account")
        return profile_id

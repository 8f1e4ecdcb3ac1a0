from app.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.core.record_store import RecordStore, asc, eq
from app.chat.models import PROFILES_TABLE

PARTNER_ROLE = {"admin": "staff", "staff": "admin"}


class PartnerDirectory:
    """Look up who a participant may open a conversation with."""

    def __init__(self, store: RecordStore):
        self.store = store

    def get_partner(self, partner_id: str) -> dict:
        partner_id = (partner_id or "").strip()
        if not partner_id:
            raise ValidationError("missing partner_id")

        profile = self.store.find(PROFILES_TABLE, [eq("id", partner_id)])
        if not profile:
            raise NotFoundError("partner not found")
        if not profile.get("is_active"):
            raise AuthorizationError("partner inactive")
        return profile

    def list_partners(self, me: str) -> list:
        """Admins see active staff, everyone else sees active admins."""
        profile = self.store.find(PROFILES_TABLE, [eq("id", me)])
        if not profile or not profile.get("is_active"):
            raise AuthorizationError("inactive or missing profile")

        target_role = PARTNER_ROLE.get(profile.get("role"), "admin")

        return self.store.find_many(
            PROFILES_TABLE,
            [eq("role", target_role), eq("is_active", True)],
            order=[asc("nickname")],
        )

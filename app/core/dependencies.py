import os
import jwt
import logging
from dotenv import load_dotenv
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.record_store import RecordStore, SupabaseRecordStore
from app.core.supabase_client import get_supabase
from app.chat.messages import MessageStore
from app.chat.reads import ReadTracker, utc_now
from app.chat.rooms import RoomResolver
from app.models.identity import Identity
from app.profiles.service import PartnerDirectory

load_dotenv()

logger = logging.getLogger(__name__)
security = HTTPBearer()


def verify_token(credentials: HTTPAuthorizationCredentials = Depends(security)):
    token = credentials.credentials

    try:
        payload = jwt.decode(
            token,
            os.getenv("SUPABASE_JWT_SECRET"),
            algorithms=["HS256"],
            issuer=f"{os.getenv('PUBLIC_SUPABASE_URL')}/auth/v1",
            options={"verify_aud": False},
            leeway=60,
        )
        return payload

    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")

    except jwt.InvalidTokenError as e:
        logger.warning(f"jwt_verification_failed error={e}")
        raise HTTPException(status_code=401, detail="Invalid token")


def get_identity(payload=Depends(verify_token)) -> Identity:
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Token has no subject")

    return Identity(user_id=str(user_id), role=payload.get("role", "authenticated"))


def get_record_store() -> RecordStore:
    return SupabaseRecordStore(get_supabase())


def get_clock():
    return utc_now


def get_room_resolver(store: RecordStore = Depends(get_record_store)) -> RoomResolver:
    return RoomResolver(store)


def get_message_store(store: RecordStore = Depends(get_record_store)) -> MessageStore:
    return MessageStore(store)


def get_read_tracker(
    store: RecordStore = Depends(get_record_store), clock=Depends(get_clock)
) -> ReadTracker:
    return ReadTracker(store, clock=clock)


def get_partner_directory(
    store: RecordStore = Depends(get_record_store),
) -> PartnerDirectory:
    return PartnerDirectory(store)

import time

import jwt

JWT_SECRET = "test-jwt-secret-for-staff-chat-0123456789"
SUPABASE_URL = "http://supabase.test"

ADMIN = "admin-1"
STAFF = "staff-1"
STAFF_2 = "staff-2"
RETIRED = "staff-9"


def make_token(user_id, expires_in=3600, secret=JWT_SECRET, issuer=None):
    now = int(time.time())
    payload = {
        "sub": user_id,
        "role": "authenticated",
        "iss": issuer or f"{SUPABASE_URL}/auth/v1",
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth(user_id, **kwargs):
    return {"Authorization": f"Bearer {make_token(user_id, **kwargs)}"}

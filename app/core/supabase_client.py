import os
from functools import lru_cache

from dotenv import load_dotenv
from supabase import AsyncClient, Client, acreate_client, create_client

from app.utils.env_helper import env_none_or_str


load_dotenv()


@lru_cache
def get_supabase() -> Client:
    """Service-role client shared by the API process."""
    supabase_url = os.getenv("PUBLIC_SUPABASE_URL")
    supabase_key = os.getenv("SECRET_API_KEY")

    return create_client(supabase_url, supabase_key)


async def get_async_supabase(access_token: str = None) -> AsyncClient:
    """Async client for realtime subscriptions, optionally acting as a user."""
    supabase_url = os.getenv("PUBLIC_SUPABASE_URL")
    supabase_key = env_none_or_str("PUBLIC_SUPABASE_ANON_KEY") or os.getenv(
        "SECRET_API_KEY"
    )

    client = await acreate_client(supabase_url, supabase_key)
    if access_token:
        await client.realtime.set_auth(access_token)
    return client

from pydantic import BaseModel


class Identity(BaseModel):
    """The caller on whose behalf a request runs, passed explicitly to services."""

    user_id: str
    role: str = "authenticated"

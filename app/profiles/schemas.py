from pydantic import BaseModel
from typing import List, Optional


class PartnerData(BaseModel):
    id: str
    nickname: Optional[str] = None
    login_id: Optional[str] = None
    role: Optional[str] = None


class GetPartnerResponseModel(BaseModel):
    partner: PartnerData


class ListPartnersResponseModel(BaseModel):
    items: List[PartnerData]

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.core.dependencies import get_identity, get_partner_directory
from app.core.exceptions import ChatError
from app.models.identity import Identity
from app.profiles.service import PartnerDirectory

from .schemas import GetPartnerResponseModel, ListPartnersResponseModel


logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=ListPartnersResponseModel, status_code=200)
def list_partners(
    me: Identity = Depends(get_identity),
    directory: PartnerDirectory = Depends(get_partner_directory),
):
    """
    List the people the caller can chat with.

    Admins get active staff members, staff get active admins, ordered by
    nickname.

    **Errors**
    - 403: The caller's own profile is missing or inactive
    """
    try:
        return {"items": directory.list_partners(me.user_id)}
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/{partner_id}", response_model=GetPartnerResponseModel, status_code=200)
def get_partner(
    partner_id: str,
    me: Identity = Depends(get_identity),
    directory: PartnerDirectory = Depends(get_partner_directory),
):
    """
    Public profile of a chat partner.

    **Errors**
    - 403: Partner is inactive
    - 404: Partner not found
    """
    try:
        return {"partner": directory.get_partner(partner_id)}
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)

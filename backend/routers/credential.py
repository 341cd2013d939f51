from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from deps import get_credentials
from services.credential_service import CredentialService
from services.whisper_client import validate_api_key_format
from utils.exceptions import ProcessingError

router = APIRouter()


class CredentialUpdate(BaseModel):
    api_key: Optional[str] = None


def _describe(credentials: CredentialService) -> dict:
    return {
        "configured": credentials.configured,
        "masked": credentials.masked(),
        "valid_format": validate_api_key_format(credentials.get()),
    }


@router.get("")
async def get_credential(credentials: CredentialService = Depends(get_credentials)):
    """Whether an API key is stored; never returns the key itself."""
    return _describe(credentials)


@router.put("")
async def update_credential(
    update: CredentialUpdate,
    credentials: CredentialService = Depends(get_credentials)
):
    """
    Save the OpenAI API key. A blank key clears it.
    Pending jobs start as soon as a key is present.
    """
    try:
        credentials.set(update.api_key)
    except RuntimeError as e:
        raise ProcessingError(str(e))
    return _describe(credentials)


@router.delete("")
async def clear_credential(credentials: CredentialService = Depends(get_credentials)):
    """Forget the stored API key."""
    try:
        credentials.clear()
    except RuntimeError as e:
        raise ProcessingError(str(e))
    return _describe(credentials)

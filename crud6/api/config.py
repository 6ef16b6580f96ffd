"""Frontend configuration endpoint."""
from fastapi import APIRouter

from crud6.config import get_settings
from crud6.db import schemas

router = APIRouter(prefix="/api/crud6", tags=["crud6"])


@router.get("/config", response_model=schemas.ConfigResponse)
def get_config():
    return {"debug_mode": get_settings().debug_mode}

"""
api/routers/mibs.py
~~~~~~~~~~~~~~~~~~~
Load status of the MIB files behind the tree.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from services.mib_service import MibTreeService, get_mib_service

router = APIRouter(prefix="/mibs", tags=["MIB Manager"])
logger = logging.getLogger(__name__)


class MibFileStatus(BaseModel):
    name: str
    file: str
    status: str
    error: Optional[str] = None


class MibStatusResponse(BaseModel):
    loaded: int
    failed: int
    total: int
    ready: bool
    error: Optional[str] = None
    roots: int
    nodes: int
    load_seconds: float
    mibs: List[MibFileStatus] = []
    errors: List[MibFileStatus] = []


@router.get("/status", response_model=MibStatusResponse)
def get_mib_status(mib_service: MibTreeService = Depends(get_mib_service)):
    return mib_service.get_status()


@router.get("/list")
def list_mibs(mib_service: MibTreeService = Depends(get_mib_service)):
    return {"mibs": mib_service.list_mib_files()}

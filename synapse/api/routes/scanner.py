"""
synapse.api.routes.scanner — Gate scanner for volunteers
==========================================================

Only active volunteers get past the guard; anyone else is sent back to
their dashboard.  A repeat scan is not an error: it answers 200 with
``already_marked: true`` so the scanner can show who it was.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from synapse.api.deps import get_store, require_volunteer
from synapse.constants import SCANNER_ROUTE
from synapse.database.store import DocumentStore
from synapse.schemas import QRVolunteer
from synapse.services.qr_service import (
    INVALID_QR,
    decode_qr_payload,
    scan_qr,
    sync_offline_attendance,
    today,
)

router = APIRouter(prefix=SCANNER_ROUTE, tags=["scanner"])
guard = require_volunteer(SCANNER_ROUTE)


# A version-40 QR code holds under 3 KB.
MAX_QR_LENGTH = 4096


class Scan(BaseModel):
    qr: str = Field(min_length=1, max_length=MAX_QR_LENGTH)


class OfflineBatch(BaseModel):
    # Validated record by record in sync_offline_attendance.
    records: list[dict] = Field(default_factory=list, max_length=500)


@router.get("")
def scanner(volunteer: QRVolunteer = Depends(guard)):
    return {"volunteer": volunteer.model_dump(), "date": today()}


@router.post("/decode")
def decode(body: Scan, volunteer: QRVolunteer = Depends(guard)):
    """Preview a pass without marking attendance."""
    payload = decode_qr_payload(body.qr)
    if payload is None:
        raise HTTPException(400, INVALID_QR)
    return payload.model_dump()


@router.post("/scan")
def scan(
    body: Scan,
    volunteer: QRVolunteer = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    result = scan_qr(store, body.qr, volunteer, scanned_by_name=volunteer.display_name)
    if not result.success and not result.extra.get("already_marked"):
        raise HTTPException(400, result.error)
    return result.to_dict()


@router.post("/sync")
def sync(
    body: OfflineBatch,
    volunteer: QRVolunteer = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return sync_offline_attendance(
        store, body.records, volunteer, scanned_by_name=volunteer.display_name,
    )

"""Legacy generic data endpoints, kept for existing clients.

Implements:
- POST /data - Store any JSON body
- GET /data - List entries
- GET /data/{entry_id} - Get one entry
- DELETE /data/{entry_id} - Delete one entry
"""

from fastapi import APIRouter, HTTPException, Path, Request

from rtdn_collector.logging_config import get_logger
from rtdn_collector.models import DataEntry
from rtdn_collector.repositories.record_store import RecordNotFoundError, get_data_store
from rtdn_collector.services.decoder import parse_body
from rtdn_collector.utils import generate_entry_id, utc_now_iso

logger = get_logger(__name__)
router = APIRouter(tags=["Legacy data"], prefix="/data")


@router.post("", response_model=DataEntry, status_code=201, summary="Create data entry")
async def create_entry(request: Request) -> DataEntry:
    entry = DataEntry(
        id=generate_entry_id(),
        data=parse_body(await request.body()),
        createdAt=utc_now_iso(),
    )
    get_data_store().append(entry)
    logger.info("data_entry_created", entry_id=entry.id)
    return entry


@router.get("", response_model=list[DataEntry], summary="List data entries")
async def list_entries() -> list[DataEntry]:
    return get_data_store().list()


@router.get("/{entry_id}", response_model=DataEntry, summary="Get data entry")
async def get_entry(entry_id: str = Path(..., description="Entry id")) -> DataEntry:
    entry = get_data_store().find(entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail={"error": "Not found"})
    return entry


@router.delete("/{entry_id}", status_code=204, summary="Delete data entry")
async def delete_entry(entry_id: str = Path(..., description="Entry id")):
    try:
        get_data_store().remove(entry_id)
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail={"error": "Not found"})
    logger.info("data_entry_deleted", entry_id=entry_id)
    return None

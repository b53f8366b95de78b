# ─────────────────────────────────────────────────────────────────
# routes/subscribers.py — All API Endpoints
#
# This file owns all HTTP request/response logic.
# It does NOT know how the check loops work (that's scheduler.py)
# It does NOT know where records are stored (that's database.py)
# It just receives requests, calls the scheduler, returns responses.
#
# The scheduler and the store are created at startup in main.py
# and hung on app.state.
# ─────────────────────────────────────────────────────────────────

import logging

from fastapi import APIRouter, HTTPException, Request, Response

from database import StoreError
from models import LocationUpdate, SubscriberList, SubscriberResponse

logger = logging.getLogger("routes")

router = APIRouter(
    prefix="/subscribers",
    tags=["Subscribers"]
)


# ─────────────────────────────────────────────────────────────────
# PUT /subscribers/{key}/location — Register or move a subscriber
# ─────────────────────────────────────────────────────────────────

@router.put("/{key}/location", response_model=SubscriberResponse)
async def update_location(key: int, body: LocationUpdate, request: Request):
    """
    Starts watching `key` at the given location.

    Re-sending a location replaces the running check loop and
    clears any alert history, so the cool-down starts over.
    """

    scheduler = request.app.state.scheduler
    store = request.app.state.store

    try:
        await scheduler.add(key, body.to_location(), None)
    except StoreError as exc:
        logger.error(f"❌ Could not register {key}: {exc}")
        raise HTTPException(status_code=500, detail=f"Could not save subscriber {key}.")

    logger.info(f"📍 {key} registered location {body.lat},{body.lon}")

    return SubscriberResponse.from_record(key, store.get(key), scheduler.is_running(key))


# ─────────────────────────────────────────────────────────────────
# DELETE /subscribers/{key} — Stop watching a subscriber
# ─────────────────────────────────────────────────────────────────

@router.delete("/{key}", status_code=204)
async def remove_subscriber(key: int, request: Request):
    # Removing an unknown key is a no-op, not a 404
    try:
        await request.app.state.scheduler.remove(key)
    except StoreError as exc:
        logger.error(f"❌ Could not remove {key}: {exc}")
        raise HTTPException(status_code=500, detail=f"Could not remove subscriber {key}.")

    logger.info(f"👋 {key} left")
    return Response(status_code=204)


# ─────────────────────────────────────────────────────────────────
# GET /subscribers — List everyone being watched
# ─────────────────────────────────────────────────────────────────

@router.get("", response_model=SubscriberList)
def list_subscribers(request: Request):
    scheduler = request.app.state.scheduler
    records = request.app.state.store.all()

    subscribers = [
        SubscriberResponse.from_record(key, record, scheduler.is_running(key))
        for key, record in sorted(records.items())
    ]
    return SubscriberList(subscribers=subscribers, total=len(subscribers))


@router.get("/{key}", response_model=SubscriberResponse)
def get_subscriber(key: int, request: Request):
    record = request.app.state.store.get(key)
    if record is None:
        raise HTTPException(
            status_code=404,
            detail=f"Subscriber '{key}' not found."
        )

    return SubscriberResponse.from_record(key, record, request.app.state.scheduler.is_running(key))

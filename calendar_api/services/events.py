import datetime as dt
from typing import Any, Callable, Dict, List, Optional

from bson import ObjectId
from pymongo.errors import PyMongoError

from calendar_api.errors import (
    InsertFailed,
    InvalidId,
    InvalidInput,
    MissingRequiredFields,
    NotFound,
    StoreUnavailable,
)
from calendar_api.models import EventFields

# ===== Utils =====
def _wall_clock() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)

class MonotonicClock:
    """UTC clock truncated to milliseconds, the precision BSON dates keep.

    Readings strictly increase within the process: a reading that would not
    move past the previous one is bumped by one millisecond.
    """

    step = dt.timedelta(milliseconds=1)

    def __init__(self, source: Callable[[], dt.datetime] = _wall_clock):
        self.source = source
        self.last: Optional[dt.datetime] = None

    def __call__(self) -> dt.datetime:
        now = self.source()
        now = now.replace(microsecond=now.microsecond // 1000 * 1000)
        if self.last is not None and now <= self.last:
            now = self.last + self.step
        self.last = now
        return now

utc_now = MonotonicClock()

def parse_iso_dt(value: str) -> Optional[dt.datetime]:
    """Parses flexible ISO8601 dates and returns normalized UTC datetime."""
    try:
        parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=dt.timezone.utc)
        return parsed.astimezone(dt.timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None

def format_iso_dt(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

def serialize_event(doc: dict) -> dict:
    data = dict(doc)
    if "_id" in data:
        data["_id"] = str(data["_id"])
    for key, value in data.items():
        if isinstance(value, dt.datetime):
            data[key] = format_iso_dt(value)
    return data

def is_valid_object_id(value: str) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)

def _require_date(value: str, label: str = "date") -> dt.datetime:
    parsed = parse_iso_dt(value)
    if parsed is None:
        raise InvalidInput(f"Invalid {label}")
    return parsed

def build_update(fields: EventFields, now: dt.datetime) -> Dict[str, Any]:
    """Build the ``$set`` document for a partial update.

    title, date and type are applied only when truthy. description and time
    are applied whenever the caller supplied them, so an empty string clears
    the stored value. updatedAt is always refreshed.
    """
    update: Dict[str, Any] = {}
    if fields.title:
        update["title"] = fields.title
    if fields.supplied("description"):
        update["description"] = fields.description or ""
    if fields.date:
        update["date"] = _require_date(fields.date)
    if fields.type:
        update["type"] = fields.type
    if fields.supplied("time"):
        update["time"] = fields.time or ""
    update["updatedAt"] = now
    return update


class EventsService:
    """CRUD over the events collection.

    Holds no state besides its collaborators, so one instance per request is
    fine. ``is_valid_id`` and ``to_store_id`` decide what an event id looks
    like; the defaults accept BSON ObjectId hex strings.
    """

    def __init__(
        self,
        collection,
        is_valid_id: Callable[[str], bool] = is_valid_object_id,
        to_store_id: Callable[[str], Any] = ObjectId,
        clock: Callable[[], dt.datetime] = utc_now,
    ):
        self.collection = collection
        self.is_valid_id = is_valid_id
        self.to_store_id = to_store_id
        self.clock = clock

    def _store_id(self, event_id: str):
        if not self.is_valid_id(event_id):
            raise InvalidId()
        return self.to_store_id(event_id)

    async def _find(self, mongo_filter: dict) -> List[dict]:
        try:
            docs = await self.collection.find(mongo_filter).to_list(length=None)
        except PyMongoError as e:
            raise StoreUnavailable("Failed to fetch events", str(e)) from e
        return [serialize_event(doc) for doc in docs]

    async def list_all(self) -> List[dict]:
        return await self._find({})

    async def list_by_range(self, start: Optional[str], end: Optional[str]) -> List[dict]:
        if not start or not end:
            raise InvalidInput("Start and end dates are required")
        start_dt = _require_date(start, "start date")
        end_dt = _require_date(end, "end date")
        return await self._find({"date": {"$gte": start_dt, "$lte": end_dt}})

    async def create(self, fields: EventFields) -> dict:
        if not fields.title or not fields.date or not fields.type:
            raise MissingRequiredFields()

        now = self.clock()
        event = {
            "title": fields.title,
            "description": fields.description or "",
            "date": _require_date(fields.date),
            "type": fields.type,
            "time": fields.time or "",
            "createdAt": now,
            "updatedAt": now,
        }

        try:
            result = await self.collection.insert_one(event)
            if not result.inserted_id:
                raise InsertFailed()
            created = await self.collection.find_one({"_id": result.inserted_id})
        except PyMongoError as e:
            raise StoreUnavailable("Failed to create event", str(e)) from e
        if created is None:
            raise InsertFailed()
        return serialize_event(created)

    async def update(self, event_id: str, fields: EventFields) -> dict:
        store_id = self._store_id(event_id)
        update = build_update(fields, self.clock())

        try:
            result = await self.collection.update_one({"_id": store_id}, {"$set": update})
            if result.matched_count == 0:
                raise NotFound()
            updated = await self.collection.find_one({"_id": store_id})
        except PyMongoError as e:
            raise StoreUnavailable("Failed to update event", str(e)) from e
        if updated is None:
            # deleted between the update and the re-read
            raise NotFound()
        return serialize_event(updated)

    async def delete(self, event_id: str) -> dict:
        store_id = self._store_id(event_id)

        try:
            result = await self.collection.delete_one({"_id": store_id})
        except PyMongoError as e:
            raise StoreUnavailable("Failed to delete event", str(e)) from e
        if result.deleted_count == 0:
            raise NotFound()
        return {"message": "Event deleted successfully"}

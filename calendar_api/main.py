import logging
import datetime as dt
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from calendar_api.config import settings
from calendar_api.database import Database, db
from calendar_api.errors import EventsError
from calendar_api.models import EventFields
from calendar_api.services.events import EventsService, format_iso_dt

# ===== Logging =====
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(message)s",
)

# ===== Lifecycle =====
@asynccontextmanager
async def lifespan(app: FastAPI):
    await db.connect()
    logging.info(f"API endpoints available at http://{settings.HOST}:{settings.PORT}/api")
    try:
        yield
    finally:
        logging.info("Shutting down server...")
        db.close()

# ===== App =====
app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ===== Dependencies =====
def get_database() -> Database:
    return db

def get_events_service() -> EventsService:
    return EventsService(db.get_event_collection())

# ===== Error handlers =====
@app.exception_handler(EventsError)
async def events_error_handler(request: Request, exc: EventsError):
    if exc.status_code >= 500:
        logging.error(
            f"{request.method} {request.url.path}: {exc.error}: {exc.message}",
            exc_info=exc.__cause__,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logging.error(f"{request.method} {request.url.path}: unhandled error: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": str(exc)},
    )

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "message": details},
    )

# ===== Endpoints =====
@app.get("/api/health")
async def health(database: Database = Depends(get_database)):
    try:
        connected = await database.ping()
        return {
            "status": "ok",
            "database": "connected" if connected else "disconnected",
            "timestamp": format_iso_dt(dt.datetime.now(dt.timezone.utc)),
        }
    except Exception as e:
        logging.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=500,
            content={"status": "error", "message": "Health check failed", "error": str(e)},
        )

@app.get("/api/events")
async def list_events(service: EventsService = Depends(get_events_service)):
    return await service.list_all()

@app.get("/api/events/range")
async def list_events_by_range(
    start: Optional[str] = None,
    end: Optional[str] = None,
    service: EventsService = Depends(get_events_service),
):
    return await service.list_by_range(start, end)

@app.post("/api/events", status_code=201)
async def create_event(
    payload: Optional[EventFields] = None,
    service: EventsService = Depends(get_events_service),
):
    return await service.create(payload or EventFields())

@app.put("/api/events/{event_id}")
async def update_event(
    event_id: str,
    payload: Optional[EventFields] = None,
    service: EventsService = Depends(get_events_service),
):
    return await service.update(event_id, payload or EventFields())

@app.delete("/api/events/{event_id}")
async def delete_event(event_id: str, service: EventsService = Depends(get_events_service)):
    return await service.delete(event_id)

# ===== Main =====
def run():
    import uvicorn
    uvicorn.run("calendar_api.main:app", host=settings.HOST, port=settings.PORT, reload=False)

if __name__ == "__main__":
    run()

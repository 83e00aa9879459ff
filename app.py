import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Depends, Response, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal, init_db
from schemas import ReadingCreate, ReadingOut
from store import ReadingStore, StorageError

# ---------- Config ----------
settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

EXPECTED_FIELDS = [
    "humidity", "timestamp", "regando", "rega_pulsos",
    "rega_volume_l", "volume_total_l", "rega_duracao_s",
    "device_ts_ms", "esp_ip", "esp_rssi",
]

app = FastAPI(title="Soil Moisture Readings", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------- DB ----------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_store(db: Session = Depends(get_db)) -> ReadingStore:
    return ReadingStore(db)

@app.on_event("startup")
def on_startup():
    init_db()

@app.exception_handler(StorageError)
def storage_error_handler(request: Request, exc: StorageError):
    return JSONResponse(status_code=503, content={"detail": str(exc)})

# ---------- APIs: readings ----------
@app.post("/reading", response_model=ReadingOut, status_code=201)
def create_reading(body: ReadingCreate, store: ReadingStore = Depends(get_store)):
    reading = store.create(body)
    logger.info("[INGEST] reading created id=%s humidity=%s regando=%s",
                reading.id, reading.humidity, reading.regando)
    return reading

@app.get("/reading", response_model=List[ReadingOut])
def list_readings(
    start: Optional[str] = Query(None, description="ISO date or epoch (s/ms), inclusive"),
    end: Optional[str] = Query(None, description="ISO date or epoch (s/ms), inclusive"),
    store: ReadingStore = Depends(get_store),
):
    if start is None and end is None:
        return store.find_all()
    if start is None or end is None:
        raise HTTPException(status_code=400, detail="start and end must be given together")
    try:
        return store.find_by_date_range(start, end)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

@app.get("/reading/test")
def test_endpoint():
    return {
        "message": "API is working",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "expectedFields": EXPECTED_FIELDS,
    }

@app.get("/reading/{reading_id}", response_model=ReadingOut)
def get_reading(reading_id: str, store: ReadingStore = Depends(get_store)):
    reading = store.find_by_id(reading_id)
    if not reading:
        raise HTTPException(status_code=404, detail="reading not found")
    return reading

@app.delete("/reading/{reading_id}", status_code=204)
def delete_reading(reading_id: str, store: ReadingStore = Depends(get_store)):
    reading = store.delete_by_id(reading_id)
    if not reading:
        raise HTTPException(status_code=404, detail="reading not found")
    logger.info("[INGEST] reading deleted id=%s", reading_id)
    return Response(status_code=204)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)

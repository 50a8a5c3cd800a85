from fastapi import FastAPI, HTTPException, Depends, Query, UploadFile, File, Form, Header
import logging
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, AliasChoices
from typing import List, Optional, Dict, Any, Tuple
from datetime import datetime, timedelta, timezone
import io
import csv

from .config import get_settings
from .database import Base, engine, SessionLocal
from .errors import CatTrackerError, ExtractionFailed, ValidationError, UnknownCat, CommitFailed, NotCatOwner
from .extractor import FeatureExtractor, VisionFeatureExtractor
from .models import CatSighting as CatSightingModel
from .reconciliation import CommitDecision, ReconciliationCoordinator
from .store import CatalogStore

settings = get_settings()

# Create tables if they don't exist (simple start; migrations recommended later)
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Cat Sighting Tracker API")
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger("cat-api")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_ERROR_STATUS = {
    ValidationError: 422,
    UnknownCat: 404,
    NotCatOwner: 403,
    ExtractionFailed: 502,
    CommitFailed: 503,
}


def _http_error(exc: CatTrackerError) -> HTTPException:
    for error_type, status_code in _ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def get_store() -> CatalogStore:
    return CatalogStore(SessionLocal)


def get_extractor() -> FeatureExtractor:
    return VisionFeatureExtractor.from_settings(settings)


def get_coordinator(
    extractor: FeatureExtractor = Depends(get_extractor),
    store: CatalogStore = Depends(get_store),
) -> ReconciliationCoordinator:
    return ReconciliationCoordinator(extractor, store, extraction_timeout=settings.vision_timeout)


# Pydantic models for request/response
class CatResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    ai_features: Optional[Dict[str, Any]] = None
    created_by: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class CatDetailResponse(CatResponse):
    sighting_count: int

class CatSummary(BaseModel):
    id: str
    name: str
    image_url: Optional[str] = None

    class Config:
        from_attributes = True

class SightingResponse(BaseModel):
    id: str
    cat_id: str
    latitude: float
    longitude: float
    spotted_by: str
    spotted_at: datetime
    notes: Optional[str] = None

    class Config:
        from_attributes = True

class SightingWithCatResponse(SightingResponse):
    cat: Optional[CatSummary] = None

class IdentifyResponse(BaseModel):
    features: Optional[Dict[str, Any]] = None
    existing_cat: Optional[CatResponse] = None
    match_score: float
    is_likely_same_cat: bool

class CatUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    # Accept both snake_case and camelCase
    image_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("image_url", "imageUrl"))

class ReportsSummaryResponse(BaseModel):
    total: int
    by_cat: List[Dict[str, Any]]
    per_day: List[Dict[str, Any]]
    start: datetime
    end: datetime


def _read_image(image: Optional[UploadFile]) -> Optional[bytes]:
    if image is None:
        return None
    if image.content_type and not image.content_type.startswith("image/"):
        raise HTTPException(status_code=422, detail="Only image uploads are allowed")
    try:
        return image.file.read()
    finally:
        image.file.close()

@app.get("/")
def read_root():
    return {"message": "Cat Sighting Tracker API", "version": "1.0.0"}

@app.get("/api/cats", response_model=List[CatResponse])
def list_cats(store: CatalogStore = Depends(get_store)):
    return store.list_cats()

@app.get("/api/cats/{cat_id}", response_model=CatDetailResponse)
def get_cat(cat_id: str, store: CatalogStore = Depends(get_store)):
    cat = store.get_cat(cat_id)
    if cat is None:
        raise HTTPException(status_code=404, detail="Cat not found")
    return CatDetailResponse(
        **CatResponse.model_validate(cat).model_dump(),
        sighting_count=store.count_sightings(cat_id),
    )

@app.get("/api/cats/{cat_id}/sightings", response_model=List[SightingResponse])
def list_cat_sightings(cat_id: str, store: CatalogStore = Depends(get_store)):
    if store.get_cat(cat_id) is None:
        raise HTTPException(status_code=404, detail="Cat not found")
    return store.list_sightings(cat_id=cat_id)

@app.get("/api/sightings", response_model=List[SightingWithCatResponse])
def list_sightings(
    limit: int = Query(100, ge=1, le=1000),
    store: CatalogStore = Depends(get_store),
):
    return store.list_sightings(limit=limit)

@app.post("/api/identify", response_model=IdentifyResponse)
def identify_cat(
    image: UploadFile = File(...),
    latitude: float = Form(...),
    longitude: float = Form(...),
    coordinator: ReconciliationCoordinator = Depends(get_coordinator),
):
    image_bytes = _read_image(image)
    logger.info("POST /api/identify image=%d bytes location=(%s, %s)", len(image_bytes), latitude, longitude)
    try:
        outcome = coordinator.propose_identity(image_bytes, latitude, longitude)
    except CatTrackerError as e:
        logger.warning("Identification failed: %s", e)
        raise _http_error(e) from e
    return IdentifyResponse(
        features=outcome.features.to_storage() if outcome.features else None,
        existing_cat=CatResponse.model_validate(outcome.candidate) if outcome.candidate else None,
        match_score=outcome.score,
        is_likely_same_cat=outcome.is_likely_same_cat,
    )

@app.post("/api/cats", response_model=CatResponse, status_code=201)
def create_cat(
    name: str = Form(...),
    image: UploadFile = File(...),
    latitude: float = Form(...),
    longitude: float = Form(...),
    notes: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    image_url: Optional[str] = Form(None),
    skip_extraction: bool = Form(False),
    x_user_id: str = Header(...),
    coordinator: ReconciliationCoordinator = Depends(get_coordinator),
):
    try:
        cat = coordinator.commit(
            CommitDecision.create_new,
            name=name,
            image_bytes=_read_image(image),
            latitude=latitude,
            longitude=longitude,
            submitter_id=x_user_id,
            notes=notes,
            description=description,
            image_url=image_url,
            skip_extraction=skip_extraction,
        )
    except CatTrackerError as e:
        logger.warning("Create cat failed: %s", e)
        raise _http_error(e) from e
    return cat

@app.post("/api/cats/{cat_id}/sightings", response_model=CatResponse, status_code=201)
def add_sighting(
    cat_id: str,
    latitude: float = Form(...),
    longitude: float = Form(...),
    notes: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    x_user_id: str = Header(...),
    coordinator: ReconciliationCoordinator = Depends(get_coordinator),
):
    try:
        cat = coordinator.commit(
            CommitDecision.append_to_existing,
            cat_id=cat_id,
            image_bytes=_read_image(image),
            latitude=latitude,
            longitude=longitude,
            submitter_id=x_user_id,
            notes=notes,
        )
    except CatTrackerError as e:
        logger.warning("Add sighting to cat id=%s failed: %s", cat_id, e)
        raise _http_error(e) from e
    return cat

@app.patch("/api/cats/{cat_id}", response_model=CatResponse)
def update_cat(
    cat_id: str,
    update: CatUpdate,
    x_user_id: str = Header(...),
    store: CatalogStore = Depends(get_store),
):
    try:
        return store.update_cat(
            cat_id,
            editor_id=x_user_id,
            name=update.name,
            description=update.description,
            image_url=update.image_url,
        )
    except CatTrackerError as e:
        raise _http_error(e) from e

def _parse_date_range(start: Optional[str], end: Optional[str]) -> Tuple[datetime, datetime]:
    """Parse ISO date strings (YYYY-MM-DD) into inclusive UTC datetime bounds.
    If missing, default to last 30 days.
    """
    try:
        if not end:
            end_dt = datetime.now(timezone.utc)
        else:
            # end of day
            end_dt = datetime.fromisoformat(end).replace(
                hour=23, minute=59, second=59, microsecond=999999, tzinfo=timezone.utc
            )
        if not start:
            start_dt = (end_dt - timedelta(days=29)).replace(hour=0, minute=0, second=0, microsecond=0)
        else:
            start_dt = datetime.fromisoformat(start).replace(
                hour=0, minute=0, second=0, microsecond=0, tzinfo=timezone.utc
            )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Invalid date: {e}") from e
    if start_dt > end_dt:
        raise HTTPException(status_code=422, detail="start must not be after end")
    return start_dt, end_dt

@app.get("/api/reports/summary", response_model=ReportsSummaryResponse)
def get_reports_summary(
    start: Optional[str] = Query(None, description="Start date YYYY-MM-DD"),
    end: Optional[str] = Query(None, description="End date YYYY-MM-DD"),
    store: CatalogStore = Depends(get_store),
):
    start_dt, end_dt = _parse_date_range(start, end)
    rows = store.sightings_between(start_dt, end_dt)

    # per cat, busiest first
    cat_counts: Dict[str, Dict[str, Any]] = {}
    for r in rows:
        entry = cat_counts.setdefault(r.cat_id, {"cat_id": r.cat_id, "name": r.cat.name, "count": 0})
        entry["count"] += 1
    by_cat = sorted(cat_counts.values(), key=lambda e: (-e["count"], e["name"]))

    # per day counts (using date(spotted_at))
    day_counts: Dict[str, int] = {}
    for r in rows:
        day = r.spotted_at.date().isoformat()
        day_counts[day] = day_counts.get(day, 0) + 1
    per_day = [
        {"date": d, "count": count}
        for d, count in sorted(day_counts.items())
    ]

    return ReportsSummaryResponse(
        total=len(rows),
        by_cat=by_cat,
        per_day=per_day,
        start=start_dt,
        end=end_dt,
    )

@app.get("/api/reports/export")
def export_reports_csv(
    start: Optional[str] = Query(None, description="Start date YYYY-MM-DD"),
    end: Optional[str] = Query(None, description="End date YYYY-MM-DD"),
    store: CatalogStore = Depends(get_store),
):
    start_dt, end_dt = _parse_date_range(start, end)
    rows: List[CatSightingModel] = store.sightings_between(start_dt, end_dt)

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([
        "id",
        "cat_id",
        "cat_name",
        "latitude",
        "longitude",
        "spotted_by",
        "spotted_at",
        "notes",
    ])
    for r in rows:
        writer.writerow([
            r.id,
            r.cat_id,
            r.cat.name if r.cat else "",
            r.latitude,
            r.longitude,
            r.spotted_by,
            r.spotted_at.isoformat() if r.spotted_at else "",
            r.notes or "",
        ])

    output.seek(0)
    filename = f"cat_sightings_{start_dt.date()}_to_{end_dt.date()}.csv"
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
        },
    )

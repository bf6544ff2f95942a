"""FastAPI adapter exposing the NoteEase store to a UI process.

Endpoints:
  GET    /state                 - View selectors, theme, registry, visible notes
  GET    /notes                 - Visible (filtered, sorted) notes
  GET    /notes/trash           - Soft-deleted notes
  GET    /notes/{id}            - A single note
  POST   /notes                 - Create a note
  PATCH  /notes/{id}            - Update a note
  POST   /notes/{id}/delete     - Move to trash
  POST   /notes/{id}/restore    - Restore from trash
  POST   /notes/{id}/pin        - Pin
  POST   /notes/{id}/unpin      - Unpin
  DELETE /notes/{id}            - Delete permanently
  DELETE /trash                 - Empty the trash
  PUT    /view                  - Set category filter and/or search query
  POST   /categories            - Register a custom category
  DELETE /categories/{name}     - Unregister a custom category
  POST   /theme/toggle          - Flip dark mode
  POST   /reset                 - Wipe all app data
  GET    /storage-error         - Pending startup storage error (shown once)
  GET    /health                - Store health
  GET    /metrics               - Prometheus metrics
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

from noteease.categories import available_categories, category_label, tag_color
from noteease.config import Settings, settings
from noteease.gateway import PersistenceGateway
from noteease.kv import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
)
from noteease.metrics import HTTP_DURATION, HTTP_REQUESTS
from noteease.models import Note, NoteDraft, NotePatch, is_custom
from noteease.store import NoteStore

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)


def build_kv_store(config: Settings) -> KeyValueStore:
    """Instantiate the key-value engine selected in settings."""
    if config.storage_backend == "memory":
        return InMemoryKeyValueStore(max_value_bytes=config.max_record_bytes)
    if config.storage_backend == "redis":
        return RedisKeyValueStore(config.redis_url)
    return JsonFileKeyValueStore(
        config.storage_path, max_value_bytes=config.max_record_bytes
    )


# --- Global instances ---
kv_store = build_kv_store(settings)
gateway = PersistenceGateway(
    kv_store,
    notes_key=settings.notes_key,
    theme_key=settings.theme_key,
    categories_key=settings.categories_key,
)
store = NoteStore(gateway, write_mode=settings.write_mode)

# Endpoints excluded from HTTP metrics
_METRICS_EXCLUDE = {"/metrics", "/openapi.json", "/docs", "/redoc"}


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP request count and duration for Prometheus."""

    async def dispatch(self, request: Request, call_next):
        """Wrap each request with timing and counting."""
        if request.url.path in _METRICS_EXCLUDE:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        # Route templates keep note ids out of the label set.
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        HTTP_REQUESTS.labels(
            method=request.method,
            endpoint=path,
            status_code=response.status_code,
        ).inc()
        HTTP_DURATION.labels(endpoint=path).observe(elapsed)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: connect storage and load notes. Shutdown: drain writes."""
    if isinstance(kv_store, RedisKeyValueStore):
        logger.info("Connecting to Redis store...")
        await kv_store.connect()
    result = await store.initialize()
    if result.storage_error:
        logger.warning("Started with storage error: %s", result.error_message)
    yield
    await store.flush()
    await kv_store.close()
    logger.info("NoteEase shut down.")


app = FastAPI(title="NoteEase", version="1.0.0", lifespan=lifespan)

app.add_middleware(MetricsMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Request / Response models ---


class ViewRequest(BaseModel):
    """Category filter and/or search query; omitted fields are left as is."""

    category: Optional[str] = None
    search: Optional[str] = None


class CategoryRequest(BaseModel):
    name: str


class CategoryInfo(BaseModel):
    """Display data for one selectable category."""

    name: str
    label: str
    color: str
    custom: bool


class StateResponse(BaseModel):
    status: str
    is_dark_mode: bool
    active_category: str
    search_query: str
    categories: list[CategoryInfo]
    trash_count: int
    notes: list[Note]


def _category_infos() -> list[CategoryInfo]:
    return [
        CategoryInfo(
            name=str(getattr(c, "value", c)),
            label=category_label(c),
            color=tag_color(c, dark=store.is_dark_mode),
            custom=is_custom(c),
        )
        for c in available_categories(store.custom_categories)
    ]


# --- Endpoints ---


@app.get("/state", response_model=StateResponse)
async def get_state() -> StateResponse:
    """Everything a list screen needs in one call."""
    return StateResponse(
        status=store.status.value,
        is_dark_mode=store.is_dark_mode,
        active_category=str(getattr(store.active_category, "value", store.active_category)),
        search_query=store.search_query,
        categories=_category_infos(),
        trash_count=store.trash_count,
        notes=store.filtered_notes,
    )


@app.get("/notes", response_model=list[Note])
async def list_notes() -> list[Note]:
    return store.filtered_notes


@app.get("/notes/trash", response_model=list[Note])
async def list_trash() -> list[Note]:
    return store.trashed_notes


@app.get("/notes/{note_id}", response_model=Note)
async def get_note(note_id: str) -> Note:
    note = store.get_note(note_id)
    if note is None:
        raise HTTPException(status_code=404, detail=f"Note {note_id} not found")
    return note


@app.post("/notes", response_model=Note, status_code=201)
async def create_note(draft: NoteDraft) -> Note:
    return store.add_note(draft)


@app.patch("/notes/{note_id}", response_model=list[Note])
async def update_note(note_id: str, patch: NotePatch) -> list[Note]:
    return store.update_note(note_id, patch)


@app.post("/notes/{note_id}/delete", response_model=list[Note])
async def delete_note(note_id: str) -> list[Note]:
    return store.delete_note(note_id)


@app.post("/notes/{note_id}/restore", response_model=list[Note])
async def restore_note(note_id: str) -> list[Note]:
    return store.restore_note(note_id)


@app.post("/notes/{note_id}/pin", response_model=list[Note])
async def pin_note(note_id: str) -> list[Note]:
    return store.pin_note(note_id)


@app.post("/notes/{note_id}/unpin", response_model=list[Note])
async def unpin_note(note_id: str) -> list[Note]:
    return store.unpin_note(note_id)


@app.delete("/notes/{note_id}", response_model=list[Note])
async def permanently_delete_note(note_id: str) -> list[Note]:
    return store.permanently_delete_note(note_id)


@app.delete("/trash")
async def empty_trash() -> dict[str, int]:
    return {"removed": store.empty_trash()}


@app.put("/view", response_model=list[Note])
async def set_view(request: ViewRequest) -> list[Note]:
    if request.category is not None:
        store.set_active_category(request.category)
    if request.search is not None:
        store.set_search_query(request.search)
    return store.filtered_notes


@app.post("/categories")
async def add_category(request: CategoryRequest) -> dict[str, Any]:
    added = store.add_custom_category(request.name)
    return {"added": added, "categories": store.custom_categories}


@app.delete("/categories/{name}")
async def remove_category(name: str) -> dict[str, Any]:
    removed = store.remove_custom_category(name)
    return {"removed": removed, "categories": store.custom_categories}


@app.post("/theme/toggle")
async def toggle_theme() -> dict[str, bool]:
    return {"is_dark_mode": store.toggle_theme()}


@app.post("/reset")
async def reset() -> dict[str, bool]:
    """Wipe all app data. ``ok`` is False when storage could not be cleared."""
    return {"ok": await store.reset_app_data()}


@app.get("/storage-error")
async def storage_error() -> dict[str, Optional[str]]:
    """Return the startup storage error once; later calls get ``null``."""
    notice = store.consume_storage_error()
    return {"message": notice.message if notice else None}


@app.get("/health")
async def health() -> dict[str, Any]:
    """Check whether the store is ready."""
    return {
        "status": "healthy" if store.is_initialized else "starting",
        "total_notes": len(store.notes),
        "trashed": store.trash_count,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)

"""
FastAPI service layer for the course command menu core.

Exposes the catalog, inline suggestions and the cache-or-fetch document
resolver over HTTP.

Run with:
    uvicorn coursemenu.api_server:app --host 0.0.0.0 --port 8000
"""
from __future__ import annotations

import os
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel

from .cache_store import CacheStore, SqliteCacheStore
from .catalog import EntityCatalog, load_catalog
from .config import FETCH_TIMEOUT_S, SUGGESTION_MIN_TOKEN_CHARS
from .document_resolver import DocumentResolver
from .errors import FetchError, StorageError
from .fuzzy import best_match
from .mention import ghost_text, parse_mention
from .metrics import ResolutionMetrics
from .observability import get_logger

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Pydantic response models
# ---------------------------------------------------------------------------

class EntityOut(BaseModel):
    id: str
    name: str
    source_url: str
    semester: str = ""


class SuggestionResponse(BaseModel):
    has_active_mention: bool
    token: str
    suggestion: str
    ghost_text: str


class ResolveResponse(BaseModel):
    entity_id: str
    entity_name: str
    payload: str
    from_cache: bool
    stored: bool
    stages: list[str]


class CachedResponse(BaseModel):
    entity_id: str
    cached: bool


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    *,
    catalog: EntityCatalog | None = None,
    store: CacheStore | None = None,
    client: httpx.AsyncClient | None = None,
    metrics: ResolutionMetrics | None = None,
) -> FastAPI:
    """Builds the service; collaborators not supplied are created at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.catalog = catalog if catalog is not None else load_catalog()
        owned_store = store is None
        app.state.store = store if store is not None else SqliteCacheStore()
        app.state.metrics = metrics if metrics is not None else ResolutionMetrics()
        app.state.resolver = DocumentResolver(
            app.state.store,
            client=client,
            timeout_s=FETCH_TIMEOUT_S,
            metrics=app.state.metrics,
        )
        logger.info("api_started", entities=len(app.state.catalog))

        yield  # Application is running.

        await app.state.resolver.aclose()
        if owned_store:
            app.state.store.close()

    app = FastAPI(
        title="Course Command Menu API",
        description="Course mention suggestions and cached reference documents",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.get("/catalog", response_model=list[EntityOut])
    async def catalog_endpoint(request: Request):
        return [
            EntityOut(id=e.id, name=e.name, source_url=e.source_url, semester=e.semester)
            for e in request.app.state.catalog
        ]

    @app.get("/suggest", response_model=SuggestionResponse)
    async def suggest_endpoint(request: Request, buffer: str = Query(default="")):
        """Computes the suggestion for the mention at the end of buffer, without debounce."""
        mention = parse_mention(buffer)
        suggestion = ""
        if mention.has_active_mention and len(mention.token) >= SUGGESTION_MIN_TOKEN_CHARS:
            suggestion = best_match(mention.token, request.app.state.catalog.names)
        return SuggestionResponse(
            has_active_mention=mention.has_active_mention,
            token=mention.token,
            suggestion=suggestion,
            ghost_text=ghost_text(buffer, suggestion, False),
        )

    @app.post("/documents/{entity_id}/resolve", response_model=ResolveResponse)
    async def resolve_endpoint(request: Request, entity_id: str):
        entity = request.app.state.catalog.get(entity_id)
        if entity is None:
            raise HTTPException(status_code=404, detail=f"Unknown entity: {entity_id}")

        stages: list[str] = []
        try:
            resolved = await request.app.state.resolver.resolve_document(
                entity.id, entity.name, entity.source_url, on_progress=stages.append
            )
        except FetchError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        except StorageError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc

        return ResolveResponse(
            entity_id=resolved.entity_id,
            entity_name=resolved.entity_name,
            payload=resolved.payload,
            from_cache=resolved.from_cache,
            stored=resolved.stored,
            stages=stages,
        )

    @app.get("/documents/{entity_id}/cached", response_model=CachedResponse)
    async def cached_endpoint(request: Request, entity_id: str):
        try:
            cached = await request.app.state.resolver.is_cached(entity_id)
        except StorageError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return CachedResponse(entity_id=entity_id, cached=cached)

    @app.delete("/cache")
    async def clear_cache_endpoint(request: Request):
        try:
            await request.app.state.resolver.clear_cache()
        except StorageError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"cleared": True}

    @app.get("/metrics")
    async def metrics_endpoint(request: Request):
        """Return aggregated resolution metrics."""
        return request.app.state.metrics.get_summary()

    return app


app = create_app()


def main():
    import uvicorn

    uvicorn.run(
        "coursemenu.api_server:app",
        host=os.getenv("API_HOST", "127.0.0.1"),
        port=int(os.getenv("API_PORT", "8000")),
    )


if __name__ == "__main__":
    main()

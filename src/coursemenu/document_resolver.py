"""
Cache-or-fetch resolution of course reference documents.

A document is treated as an immutable blob: the first resolve() for an
entity id downloads it, base64-encodes it and stores it; every later call is
served from the cache without touching the network.

Concurrent misses for the same id each download and upsert independently
(last write wins) unless coalesce_inflight is enabled, in which case later
callers await the download already in progress.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import httpx

from .cache_store import CacheRecord, CacheStore, now_ms
from .catalog import Entity
from .config import FETCH_COALESCE_INFLIGHT, FETCH_TIMEOUT_S
from .errors import FetchError, StorageError
from .metrics import ResolutionMetrics
from .observability import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[str], None]


class ProgressStage(str, Enum):
    CHECKING_CACHE = "checking cache"
    FOUND_IN_CACHE = "found in cache"
    DOWNLOADING = "downloading"
    CONVERTING = "converting"
    STORING = "storing"
    READY = "ready"


@dataclass(frozen=True)
class ResolvedDocument:
    entity_id: str
    entity_name: str
    payload: str
    from_cache: bool
    stored: bool
    storage_error: str | None = None


def encode_payload(raw: bytes) -> str:
    return base64.b64encode(bytes(raw)).decode("ascii")


def decode_payload(payload: str) -> bytes:
    try:
        return base64.b64decode(payload.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"payload is not valid base64: {exc}") from exc


async def download_document(client: httpx.AsyncClient, url: str) -> bytes:
    """GETs url and returns the body; any transport failure or non-2xx raises FetchError."""
    try:
        response = await client.get(url, headers={"Accept": "application/pdf"})
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise FetchError(url, f"Failed to download document: {exc}") from exc
    if not response.is_success:
        raise FetchError(
            url,
            f"Failed to download document: {response.status_code}",
            status_code=response.status_code,
        )
    return response.content


def _report(on_progress: ProgressCallback | None, stage: ProgressStage):
    if on_progress is not None:
        on_progress(stage.value)


class DocumentResolver:
    def __init__(
        self,
        store: CacheStore,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = FETCH_TIMEOUT_S,
        coalesce_inflight: bool = FETCH_COALESCE_INFLIGHT,
        metrics: ResolutionMetrics | None = None,
    ):
        self.store = store
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout_s, follow_redirects=True)
        self.coalesce_inflight = bool(coalesce_inflight)
        self.metrics = metrics
        self._inflight: dict[str, asyncio.Task] = {}

    async def __aenter__(self) -> "DocumentResolver":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def resolve(
        self,
        entity_id: str,
        entity_name: str,
        source_url: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Returns the base64 payload for entity_id, downloading it on a cache miss."""
        resolved = await self.resolve_document(entity_id, entity_name, source_url, on_progress)
        return resolved.payload

    async def resolve_entity(self, entity: Entity, on_progress: ProgressCallback | None = None) -> str:
        return await self.resolve(entity.id, entity.name, entity.source_url, on_progress)

    async def resolve_document(
        self,
        entity_id: str,
        entity_name: str,
        source_url: str,
        on_progress: ProgressCallback | None = None,
    ) -> ResolvedDocument:
        start = time.perf_counter()
        _report(on_progress, ProgressStage.CHECKING_CACHE)
        record = await asyncio.to_thread(self.store.get, entity_id)
        if record is not None:
            _report(on_progress, ProgressStage.FOUND_IN_CACHE)
            logger.info("document_cache_hit", entity_id=entity_id)
            self._record(entity_id, "hit", start)
            return ResolvedDocument(
                entity_id=entity_id,
                entity_name=record.entity_name,
                payload=record.payload,
                from_cache=True,
                stored=True,
            )

        logger.info("document_cache_miss", entity_id=entity_id, source_url=source_url)
        if not self.coalesce_inflight:
            return await self._fetch_and_store(entity_id, entity_name, source_url, on_progress, start)

        pending = self._inflight.get(entity_id)
        if pending is not None:
            logger.info("document_fetch_joined", entity_id=entity_id)
            resolved = await asyncio.shield(pending)
            _report(on_progress, ProgressStage.READY)
            return resolved

        task = asyncio.ensure_future(
            self._fetch_and_store(entity_id, entity_name, source_url, on_progress, start)
        )
        self._inflight[entity_id] = task
        task.add_done_callback(lambda _: self._inflight.pop(entity_id, None))
        return await asyncio.shield(task)

    async def _fetch_and_store(
        self,
        entity_id: str,
        entity_name: str,
        source_url: str,
        on_progress: ProgressCallback | None,
        start: float,
    ) -> ResolvedDocument:
        _report(on_progress, ProgressStage.DOWNLOADING)
        try:
            raw = await download_document(self._client, source_url)
        except FetchError as exc:
            logger.error(
                "document_fetch_failed",
                entity_id=entity_id,
                source_url=source_url,
                status_code=exc.status_code,
                error=str(exc),
            )
            self._record(entity_id, "fetch_error", start)
            raise

        _report(on_progress, ProgressStage.CONVERTING)
        payload = encode_payload(raw)

        _report(on_progress, ProgressStage.STORING)
        record = CacheRecord(
            id=entity_id,
            entity_name=entity_name,
            source_url=source_url,
            payload=payload,
            last_updated=now_ms(),
        )
        storage_error: str | None = None
        try:
            await asyncio.to_thread(self.store.put, record)
        except StorageError as exc:
            # The payload is still good; only later cache hits are lost.
            storage_error = str(exc)
            logger.warning("document_cache_store_failed", entity_id=entity_id, error=storage_error)

        _report(on_progress, ProgressStage.READY)
        self._record(
            entity_id,
            "miss" if storage_error is None else "storage_error",
            start,
            bytes_downloaded=len(raw),
        )
        return ResolvedDocument(
            entity_id=entity_id,
            entity_name=entity_name,
            payload=payload,
            from_cache=False,
            stored=storage_error is None,
            storage_error=storage_error,
        )

    async def is_cached(self, entity_id: str) -> bool:
        return await asyncio.to_thread(self.store.contains, entity_id)

    async def clear_cache(self):
        await asyncio.to_thread(self.store.clear)

    def _record(self, entity_id: str, outcome: str, start: float, bytes_downloaded: int = 0):
        if self.metrics is None:
            return
        latency_ms = (time.perf_counter() - start) * 1000.0
        self.metrics.record_resolution(entity_id, outcome, latency_ms, bytes_downloaded=bytes_downloaded)

"""
Bulk Archive Streamer
=====================

Streams many photos as one uncompressed ZIP without holding the archive in
memory.

Phase 1 (``prepare``) runs against the database: rate limit, id coercion,
per-photo authorization and signing. It produces a plain ``ArchivePlan``.
Phase 2 (``stream``) never touches the database, so it keeps working after
the request's session is closed. Member bytes are prefetched by a bounded
worker pool, capped by declared size (``ARCHIVE_PREFETCH_BYTES``), and
written to the archive in order in fixed-size chunks.
"""
import asyncio
import logging
import re
import zipfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote

import httpx
from sqlalchemy.orm import Session

from guestlens.app.config import settings
from guestlens.core.access import Requester, can_access, can_manage, resolve_access_code
from guestlens.core.exceptions import ForbiddenError, InvalidInputError
from guestlens.core.rate_limiter import enforce_rate_limit
from guestlens.models.event import Event
from guestlens.repositories.event_repo import EventRepository
from guestlens.repositories.photo_repo import PhotoRepository
from guestlens.services.photos import local_photo_path
from guestlens.services.storage.base import ObjectStore
from guestlens.utils.concurrency import iter_bounded, run_blocking, run_bounded
from guestlens.utils.parsing import coerce_positive_int

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_NAME = "photos.zip"
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
WRITE_CHUNK_BYTES = 1024 * 1024


@dataclass
class ArchiveEntry:
    """One archive member: a signed URL or a local path, never both."""
    photo_id: int
    name: str
    size: int
    url: Optional[str] = None
    path: Optional[str] = None
    modified: Optional[datetime] = None


@dataclass
class ArchivePlan:
    entries: List[ArchiveEntry]
    filename: str
    total_bytes: int

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Content-Disposition": content_disposition(self.filename),
            "X-Zip-Filename": quote(self.filename),
            "X-Total-Bytes": str(self.total_bytes),
            "Cache-Control": "no-store",
        }


MemberFetcher = Callable[[ArchiveEntry], Awaitable[bytes]]


def parse_photo_ids(raw_ids: Sequence[Any], max_ids: int) -> List[int]:
    """Coerce to positive ints, de-duplicate keeping first occurrence."""
    ids: List[int] = []
    seen = set()
    for raw in raw_ids or []:
        photo_id = coerce_positive_int(raw)
        if photo_id is None or photo_id in seen:
            continue
        seen.add(photo_id)
        ids.append(photo_id)

    if not ids:
        raise InvalidInputError("No valid photo IDs provided")
    if len(ids) > max_ids:
        raise InvalidInputError("Too many photos requested")
    return ids


class NameAllocator:
    """Hands out unique member names: a.jpg, a (2).jpg, a (3).jpg."""

    def __init__(self):
        self._counts: Dict[str, int] = {}
        self._used = set()

    def allocate(self, base: str) -> str:
        count = self._counts.get(base, 0)
        while True:
            count += 1
            candidate = base if count == 1 else self._numbered(base, count)
            if candidate not in self._used:
                break
        self._counts[base] = count
        self._used.add(candidate)
        return candidate

    @staticmethod
    def _numbered(base: str, count: int) -> str:
        dot = base.rfind(".")
        if dot > 0:
            return f"{base[:dot]} ({count}){base[dot:]}"
        return f"{base} ({count})"


def sanitize_member_name(name: str) -> str:
    name = name.replace("\\", "/").rsplit("/", 1)[-1].strip()
    return name or "photo"


def sanitize_archive_base(name: str) -> str:
    raw = re.sub(r"\s+", " ", (name or "").strip())
    cleaned = re.sub(r'[/\\?%*:|"<>]', "", raw).strip()
    return cleaned[:80].strip() or "event-photos"


def content_disposition(filename: str) -> str:
    ascii_fallback = re.sub(r"[^\x20-\x7E]+", "_", filename).replace('"', "")
    return f"attachment; filename=\"{ascii_fallback}\"; filename*=UTF-8''{quote(filename)}"


class _ChunkSink:
    """Write-only, non-seekable file object; zipfile falls back to data descriptors."""

    def __init__(self):
        self._chunks: List[bytes] = []

    def write(self, data) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def flush(self):
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


class BulkArchiveStreamer:
    def __init__(
        self,
        db: Optional[Session],
        store: ObjectStore,
        fetcher: Optional[MemberFetcher] = None,
    ):
        self.db = db
        self.store = store
        self.fetcher = fetcher

    async def prepare(
        self,
        raw_ids: Sequence[Any],
        requester: Requester,
        headers: Mapping[str, str],
        cookies: Mapping[str, str],
        client: str,
    ) -> ArchivePlan:
        """
        Authorize and sign every requested photo.

        Missing or inaccessible photos are skipped, as are pending ones unless
        the requester manages their event.

        Raises:
            RateLimitedError: Too many archives from this client
            InvalidInputError: No usable ids or too many
            ForbiddenError: Nothing was authorized
        """
        await enforce_rate_limit(
            "bulk-download",
            "photos",
            client,
            settings.BULK_DOWNLOAD_RATE_LIMIT,
            settings.BULK_DOWNLOAD_RATE_WINDOW_SECS,
        )
        ids = parse_photo_ids(raw_ids, settings.ARCHIVE_MAX_PHOTOS)

        photos = PhotoRepository(self.db)
        events = EventRepository(self.db)
        memo: Dict[int, Tuple[Optional[Event], bool, bool]] = {}

        def event_verdict(event_id: int) -> Tuple[Optional[Event], bool, bool]:
            """(event, may view, may see pending photos), memoized per event."""
            if event_id not in memo:
                event = events.get(event_id)
                allowed = manager = False
                if event is not None:
                    code = None
                    if not event.is_public:
                        code = resolve_access_code(requester.access_code, headers, cookies, event.event_code)
                    scoped = requester.with_code(code)
                    role = events.get_member_role(event.id, scoped.user_id)
                    allowed = can_access(event, scoped, role)
                    manager = can_manage(event, scoped, role)
                memo[event_id] = (event, allowed, manager)
            return memo[event_id]

        async def resolve(photo_id: int) -> Optional[Tuple[Any, Event, Optional[str], Optional[str]]]:
            photo = photos.get(photo_id)
            if photo is None:
                return None
            event, allowed, manager = event_verdict(photo.event_id)
            if not allowed or not (photo.is_approved or manager):
                return None
            if photo.s3_key:
                url = await run_blocking(
                    self.store.sign_get, photo.s3_key, settings.ARCHIVE_SIGNED_URL_TTL_SECS
                )
                return photo, event, url, None
            return photo, event, None, str(local_photo_path(photo.file_path))

        results = await run_bounded(ids, resolve, settings.ARCHIVE_WORKERS)

        names = NameAllocator()
        entries: List[ArchiveEntry] = []
        event_ids = set()
        event_names: Dict[int, str] = {}
        for result in results:
            if not result.ok:
                logger.warning(f"Skipping photo {result.item} in archive: {result.error}")
                continue
            if result.value is None:
                continue
            photo, event, url, path = result.value
            event_ids.add(event.id)
            event_names[event.id] = event.name
            entries.append(ArchiveEntry(
                photo_id=photo.id,
                name=names.allocate(sanitize_member_name(photo.display_filename)),
                size=photo.file_size or 0,
                url=url,
                path=path,
                modified=photo.uploaded_at,
            ))

        if not entries:
            raise ForbiddenError("Forbidden")

        filename = DEFAULT_ARCHIVE_NAME
        if len(event_ids) == 1:
            filename = f"{sanitize_archive_base(event_names[event_ids.pop()])}.zip"

        plan = ArchivePlan(
            entries=entries,
            filename=filename,
            total_bytes=sum(entry.size for entry in entries),
        )
        logger.info(
            f"Archive prepared for {client}: {len(entries)}/{len(ids)} photos, {plan.total_bytes} bytes"
        )
        return plan

    async def stream(self, plan: ArchivePlan) -> AsyncIterator[bytes]:
        """Yield the ZIP in chunks; failed or timed-out members are skipped."""
        if self.fetcher is not None:
            async for chunk in self._stream_with(plan, self.fetcher):
                yield chunk
            return

        async with httpx.AsyncClient(timeout=settings.ARCHIVE_MEMBER_TIMEOUT_SECS) as client:
            async def fetch(entry: ArchiveEntry) -> bytes:
                if entry.url:
                    response = await client.get(entry.url)
                    response.raise_for_status()
                    return response.content
                return await run_blocking(Path(entry.path).read_bytes)

            async for chunk in self._stream_with(plan, fetch):
                yield chunk

    async def _stream_with(self, plan: ArchivePlan, fetch: MemberFetcher) -> AsyncIterator[bytes]:
        async def fetch_with_timeout(entry: ArchiveEntry) -> bytes:
            return await asyncio.wait_for(fetch(entry), timeout=settings.ARCHIVE_MEMBER_TIMEOUT_SECS)

        sink = _ChunkSink()
        written = 0
        with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_STORED, allowZip64=True) as archive:
            members = iter_bounded(
                plan.entries,
                fetch_with_timeout,
                settings.ARCHIVE_WORKERS,
                weigh=lambda entry: entry.size,
                budget=settings.ARCHIVE_PREFETCH_BYTES,
            )
            async for result in members:
                entry = result.item
                if not result.ok:
                    logger.warning(f"Skipping archive member {entry.name}: {result.error!r}")
                    continue

                data = memoryview(result.value)
                info = zipfile.ZipInfo(entry.name, date_time=_zip_timestamp(entry.modified))
                info.compress_type = zipfile.ZIP_STORED
                info.file_size = len(data)
                with archive.open(info, mode="w") as member:
                    for offset in range(0, len(data), WRITE_CHUNK_BYTES):
                        member.write(data[offset:offset + WRITE_CHUNK_BYTES])
                        chunk = sink.drain()
                        if chunk:
                            yield chunk
                written += 1

                chunk = sink.drain()
                if chunk:
                    yield chunk

        tail = sink.drain()
        if tail:
            yield tail
        logger.info(f"Archive {plan.filename} streamed: {written}/{len(plan.entries)} members")


def _zip_timestamp(value: Optional[datetime]) -> Tuple[int, int, int, int, int, int]:
    if value is None or value.year < 1980:
        return ZIP_EPOCH
    return (value.year, value.month, value.day, value.hour, value.minute, value.second)

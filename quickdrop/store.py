"""
Ephemeral blob store.

Each file lives under one handle ``H`` as a metadata record at ``H:meta``
and ``chunkCount`` fragments at ``H:chunk:<i>``, all written with the same
time-to-live. Live handles are also tracked in the ``active_files`` set,
which is bookkeeping only: the per-key expiry decides what exists.

Lifecycle per handle::

    absent -> active -> consumed -> absent
    absent -> active -> absent          (expired or swept, never downloaded)

Writes and reads are sequences of single-key operations with no
transaction around them. Two downloads racing on the same handle can both
succeed; deletes are idempotent, so the only effect is a second delivery.
"""

import asyncio
import logging
import time
from typing import Callable

from . import codec
from . import utils
from .exceptions import CleanupError, NotFoundError, StoreError
from .kvstore import KVStore
from .models import FileRecord

logger = logging.getLogger(__name__)

ACTIVE_SET_KEY = "active_files"


def meta_key(handle: str) -> str:
    return f"{handle}:meta"


def chunk_key(handle: str, index: int) -> str:
    return f"{handle}:chunk:{index}"


def chunk_keys(handle: str, count: int) -> list[str]:
    return [chunk_key(handle, i) for i in range(count)]


class BlobStore:
    def __init__(
        self,
        kv: KVStore,
        max_chunk_size: int = 750 * 1024,
        max_total_size: int = 100 * 1024 * 1024,
        expiry_time: int = 120,
        max_retries: int = 5,
        clock: Callable[[], float] = time.time,
    ):
        self.kv = kv
        self.MAX_CHUNK_SIZE = max_chunk_size
        self.MAX_TOTAL_SIZE = max_total_size
        self.EXPIRY_TIME = expiry_time
        self.MAX_RETRIES = max_retries
        self.clock = clock

        # Pending deferred sweeps, kept so they are not garbage collected
        # and can be cancelled on shutdown.
        self._sweeps: set[asyncio.Task] = set()

    # ---- Handles ----

    async def generate_handle(self) -> str:
        """Pick a random handle whose metadata key is not in use."""
        for attempt in range(self.MAX_RETRIES):
            candidate = utils.generate_handle()
            if not await self.kv.exists(meta_key(candidate)):
                return candidate
            logger.debug(f"Handle collision on {candidate} (attempt {attempt + 1})")
        raise StoreError(f"Failed to generate a unique file code after {self.MAX_RETRIES} attempts")

    async def active_handles(self) -> set[str]:
        return await self.kv.smembers(ACTIVE_SET_KEY)

    async def is_active(self, handle: str) -> bool:
        return await self.kv.sismember(ACTIVE_SET_KEY, handle)

    # ---- Write ----

    async def put(
        self,
        file_name: str,
        payload: str,
        ttl_seconds: int | None = None,
        handle: str | None = None,
    ) -> FileRecord:
        """Chunk *payload* and store it under a new (or the given) handle.

        Size limits are checked before anything is written. If the backend
        fails part way, keys already written are removed and the error is
        re-raised.
        """
        ttl = ttl_seconds or self.EXPIRY_TIME

        fragments = codec.split(payload, self.MAX_CHUNK_SIZE)
        size = codec.check_chunked_size(fragments, self.MAX_TOTAL_SIZE)

        if handle is None:
            handle = await self.generate_handle()

        now_ms = int(self.clock() * 1000)
        record = FileRecord(
            handle=handle,
            file_name=file_name,
            chunk_count=len(fragments),
            total_size=size,
            payload_length=len(payload),
            created_at=now_ms,
            expires_at=now_ms + ttl * 1000,
            downloaded=False,
        )

        try:
            # Metadata first, so a reader never mistakes a half-written
            # upload for a missing one.
            await self.kv.set(meta_key(handle), record.dump(), ex=ttl)
            for i, fragment in enumerate(fragments):
                await self.kv.set(chunk_key(handle, i), fragment, ex=ttl)
        except Exception:
            logger.error(f"Failed to store {handle}, removing partial upload")
            try:
                await self._purge(handle, len(fragments))
            except Exception:
                logger.warning(f"Failed to remove partial upload {handle}", exc_info=True)
            raise

        await self.kv.sadd(ACTIVE_SET_KEY, handle)
        # The set lives at least as long as its newest member
        if await self.kv.ttl(ACTIVE_SET_KEY) < ttl:
            await self.kv.expire(ACTIVE_SET_KEY, ttl)

        self.schedule_sweep(handle, len(fragments), ttl, record.created_at)

        logger.info(f"Stored {handle} ({len(fragments)} chunks, {utils.format_file_size(record.total_size)}, ttl={ttl}s)")
        return record

    # ---- Read ----

    async def get_record(self, handle: str) -> FileRecord | None:
        raw = await self.kv.get(meta_key(handle))
        if raw is None:
            return None
        return FileRecord.load(raw)

    async def get(self, handle: str) -> tuple[FileRecord, str]:
        """Fetch and consume the file stored under *handle*.

        Raises ``NotFoundError`` if the handle is unknown, expired or already
        downloaded, and ``MissingChunkError`` if a chunk is absent. On success
        the handle is consumed; failures while doing so are only logged.
        """
        record = await self.get_record(handle)
        if record is None or record.downloaded:
            raise NotFoundError()

        fetched = []
        for i in range(record.chunk_count):
            fetched.append(await self.kv.get(chunk_key(handle, i)))
        payload = codec.join(codec.collect(fetched), record.payload_length)

        try:
            await self._consume(record)
        except Exception as e:
            error = CleanupError(f"Failed to clean up {handle} after download: {e}")
            logger.warning(error.message, exc_info=True)

        return record, payload

    async def _consume(self, record: FileRecord) -> None:
        handle = record.handle
        record.downloaded = True
        # Rewrite with the original absolute expiry; never extend it
        if record.expires_at > int(self.clock() * 1000):
            await self.kv.set(meta_key(handle), record.dump(), pxat=record.expires_at)
        else:
            await self.kv.delete(meta_key(handle))

        await self.kv.delete(*chunk_keys(handle, record.chunk_count))
        await self.kv.srem(ACTIVE_SET_KEY, handle)
        logger.info(f"Consumed {handle}")

    # ---- Cleanup ----

    async def _purge(self, handle: str, chunk_count: int) -> None:
        await self.kv.delete(meta_key(handle), *chunk_keys(handle, chunk_count))
        await self.kv.srem(ACTIVE_SET_KEY, handle)

    async def sweep(self, handle: str, chunk_count: int, created_at: int | None = None) -> bool:
        """Remove every key of a handle that was never downloaded.

        Returns ``True`` if an undownloaded record was found and removed.
        Consumed handles keep their metadata until it expires; their chunks
        and set entry are already gone. Missing keys are not an error.
        With *created_at*, a record from a later upload that reused the
        handle is left alone.
        """
        record = await self.get_record(handle)
        if record is not None:
            if record.downloaded:
                return False
            if created_at is not None and record.created_at != created_at:
                return False

        await self._purge(handle, record.chunk_count if record else chunk_count)
        if record is not None:
            logger.info(f"[Cleanup] Swept expired file {handle}")
        return record is not None

    def schedule_sweep(
        self, handle: str, chunk_count: int, delay: float, created_at: int | None = None
    ) -> asyncio.Task:
        """Run ``sweep`` for *handle* after *delay* seconds, in the background."""
        task = asyncio.create_task(self._sweep_later(handle, chunk_count, delay, created_at))
        self._sweeps.add(task)
        task.add_done_callback(self._sweeps.discard)
        return task

    async def _sweep_later(self, handle: str, chunk_count: int, delay: float, created_at: int | None) -> None:
        await asyncio.sleep(delay)
        try:
            await self.sweep(handle, chunk_count, created_at)
        except Exception as e:
            logger.error(f"[Cleanup] Sweep of {handle} failed: {e}", exc_info=True)

    async def reconcile(self) -> list[str]:
        """Drop active-set members whose metadata has already expired."""
        stale = []
        for handle in await self.active_handles():
            if not await self.kv.exists(meta_key(handle)):
                stale.append(handle)
        if stale:
            await self.kv.srem(ACTIVE_SET_KEY, *stale)
        return stale

    async def close(self) -> None:
        """Cancel pending sweeps."""
        tasks = list(self._sweeps)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._sweeps.clear()

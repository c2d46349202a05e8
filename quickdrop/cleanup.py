import asyncio
import logging

from .store import BlobStore

logger = logging.getLogger(__name__)


async def run_cleanup(store: BlobStore) -> tuple[int, list[str]]:
    """
    One cleanup pass: physically drop expired keys from the backend, then
    remove handles from the active set whose metadata no longer exists.

    Returns the number of purged keys and the list of stale handles.
    """
    purged = await store.kv.purge_expired()
    if purged:
        logger.info(f"[Cleanup] Purged {purged} expired keys")

    stale = await store.reconcile()
    if stale:
        logger.info(f"[Cleanup] Removed {len(stale)} stale handle(s) from the active set")

    return purged, stale


async def cleanup_expired(store: BlobStore, interval: int = 300):
    """
    Background task that runs ``run_cleanup`` every ``interval`` seconds
    (default: 5 minutes).

    Per-upload sweeps remove undownloaded files on time; this loop catches
    whatever they missed, e.g. uploads made before a restart.
    """
    while True:
        try:
            await asyncio.sleep(interval)
            await run_cleanup(store)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[Cleanup] Error in cleanup task: {e}", exc_info=True)
            continue

from fastapi import APIRouter

from .. import utils
from ..store import BlobStore


def create_monitor_router(store: BlobStore) -> APIRouter:
    router = APIRouter(prefix="/monitor", tags=["Monitor"])

    @router.get("/stats")
    async def get_monitor_stats():
        """Get statistics about files currently waiting to be downloaded.
        """
        now = store.clock()
        total_size = 0
        items = []

        for handle in sorted(await store.active_handles()):
            record = await store.get_record(handle)
            # Set membership is advisory; the metadata may already be gone
            if record is None:
                continue

            total_size += record.total_size
            items.append({
                "code": handle,
                "file_name": record.file_name,
                "chunks": record.chunk_count,
                "size": utils.format_file_size(record.total_size),
                "expires_in": max(0, utils.remaining_seconds(record.expires_at, now)),
                "downloaded": record.downloaded,
            })

        return {
            "total_items": len(items),
            "total_size": utils.format_file_size(total_size),
            "items": items
        }

    return router

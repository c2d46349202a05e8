import logging
import re
from urllib.parse import quote

import pydantic
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from .. import codec
from .. import utils
from ..exceptions import NotFoundError, QuickDropError, RetrievalError, ValidationError
from ..models import UploadRequest, UploadResponse
from ..store import BlobStore

logger = logging.getLogger(__name__)

# File handle format: 6 uppercase hex characters
HANDLE_PATTERN = re.compile(r'^[0-9A-F]{6}$')


class TransferRouter:
    def __init__(self, store: BlobStore, version: str):
        self.store = store
        self.VERSION = version

        self.router = APIRouter(tags=["Transfer"])
        self.router.add_api_route("/", self.root, methods=["GET"])
        self.router.add_api_route("/upload", self.upload, methods=["POST"], response_model=UploadResponse)
        self.router.add_api_route("/download", self.download, methods=["GET"], response_model=None)

    async def root(self):
        return {
            "status": "ok",
            "message": "QuickDrop API is running",
            "version": self.VERSION,
            "config": {
                "max_chunk_size": self.store.MAX_CHUNK_SIZE,
                "max_total_size": self.store.MAX_TOTAL_SIZE,
                "expiry_time": self.store.EXPIRY_TIME,
            }
        }

    async def upload(self, request: Request):
        """Store an encoded file and return the code to fetch it with.

        Body: ``{"file": <data URL or base64>, "fileName": <name>}``
        """
        try:
            body = await request.json()
            data = UploadRequest.model_validate(body)
        except (ValueError, pydantic.ValidationError) as e:
            raise ValidationError(f"Invalid request: {_describe(e)}")

        # Coarse size check on the decoded bytes before anything else
        decoded = codec.decode_payload(data.file)
        codec.check_raw_size(len(decoded), self.store.MAX_TOTAL_SIZE)

        try:
            record = await self.store.put(data.fileName, data.file)
        except QuickDropError:
            raise
        except Exception as e:
            logger.error(f"Upload error: {e}", exc_info=True)
            return JSONResponse({"error": "Failed to upload file"}, status_code=500)

        origin = request.headers.get("origin") or str(request.base_url).rstrip("/")
        return UploadResponse(
            code=record.handle,
            downloadUrl=f"{origin}/download?code={record.handle}",
            size=utils.format_file_size(record.total_size),
            expiresIn=self.store.EXPIRY_TIME,
        )

    async def download(self, request: Request):
        """Serve a stored file once, then discard it.

        Query params: code
        """
        code = request.query_params.get("code")
        if not code:
            raise ValidationError("No code provided")

        code = code.strip().upper()
        if not HANDLE_PATTERN.match(code):
            # Cannot have been issued, so it cannot be stored
            raise NotFoundError()

        try:
            record, payload = await self.store.get(code)
            content = codec.decode_payload(payload)
        except NotFoundError:
            raise
        except RetrievalError as e:
            logger.error(f"Download error for {code}: {e.message}")
            return JSONResponse({"error": "Failed to download file"}, status_code=500)
        except Exception as e:
            logger.error(f"Download error for {code}: {e}", exc_info=True)
            return JSONResponse({"error": "Failed to download file"}, status_code=500)

        return Response(
            content=content,
            media_type="application/octet-stream",
            headers={"Content-Disposition": content_disposition(record.file_name)},
        )


def _describe(error: Exception) -> str:
    if isinstance(error, pydantic.ValidationError):
        return "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in error.errors()
        )
    return "body must be valid JSON"


def content_disposition(file_name: str) -> str:
    """``attachment; filename="..."`` header value for *file_name*.

    Names that are not plain ASCII also get an RFC 5987 ``filename*``.
    """
    safe = file_name.replace("\\", "_").replace('"', "'").replace("\r", "").replace("\n", "")
    if safe.isascii():
        return f'attachment; filename="{safe}"'
    fallback = safe.encode("ascii", "replace").decode("ascii")
    return f'attachment; filename="{fallback}"; filename*=UTF-8\'\'{quote(safe)}'

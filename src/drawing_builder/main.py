from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool

from .assets import build_asset_repository
from .configuration import build_config_metadata, load_settings
from .documents import PDF_CONTENT_TYPE
from .errors import DrawingBuilderError, IOFailure
from .models import ConfigMetadata, Settings
from .pipeline import DocumentMerger
from .services import HttpAssemblerService, HttpOutputService

logger = logging.getLogger(__name__)

MERGE_DOCUMENT_PATH = "/bin/iec/mergeDocument"
ERROR_MESSAGE = "Exception generating pdf"


@asynccontextmanager
async def lifespan(_: FastAPI):
    # Fail at boot rather than on the first request when the configuration is bad
    settings = get_settings()
    logger.info(f"Drawing builder ready (charset={settings.charset}, assets={settings.assets.backend})")
    yield


app = FastAPI(title="IEC Drawing Builder", version="0.1.0", lifespan=lifespan)

allowed_origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


@lru_cache(maxsize=1)
def _default_merger() -> DocumentMerger:
    settings = get_settings()
    return DocumentMerger(
        settings=settings,
        assets=build_asset_repository(settings.assets),
        output_service=HttpOutputService.from_settings(settings.services),
        assembler_service=HttpAssemblerService.from_settings(settings.services),
    )


def get_document_merger() -> DocumentMerger:
    return _default_merger()


@app.get("/healthz")
def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/config/defaults", response_model=ConfigMetadata)
def get_config_defaults(settings: Settings = Depends(get_settings)) -> ConfigMetadata:
    return build_config_metadata(settings)


async def _read_merge_request(request: Request, charset: str) -> tuple[bytes, Dict[str, Optional[str]]]:
    params: Dict[str, Optional[str]] = {name: request.query_params.get(name) for name in ("template", "drawing", "ddx")}

    content_type = request.headers.get("content-type", "")
    if not content_type.startswith("multipart/form-data"):
        return await request.body(), params

    form = await request.form()
    try:
        for name in params:
            value = form.get(name)
            if isinstance(value, str) and value.strip():
                params[name] = value
        upload = form.get("data")
        if upload is None:
            raise IOFailure("Multipart request has no 'data' part")
        body = await upload.read() if hasattr(upload, "read") else str(upload).encode(charset)
    finally:
        await form.close()
    return body, params


@app.post(MERGE_DOCUMENT_PATH)
async def merge_document(request: Request, merger: DocumentMerger = Depends(get_document_merger)) -> Response:
    """
    Create a merged drawing document from the posted XML data, a form
    template and a drawing fragment, all three assembled by the remote
    form services.
    """
    try:
        try:
            body, params = await _read_merge_request(request, merger.settings.charset)
        except (OSError, UnicodeError) as exc:
            raise IOFailure(f"Could not read request body: {exc}") from exc
        pdf = await run_in_threadpool(merger.render, body, **params)
    except DrawingBuilderError:
        logger.exception("Exception generating pdf")
        return PlainTextResponse(ERROR_MESSAGE, status_code=500)
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error generating pdf")
        return PlainTextResponse(ERROR_MESSAGE, status_code=500)

    return Response(content=pdf, media_type=PDF_CONTENT_TYPE)

"""
REST API for the Share Store

Design Decision: API Framework
==============================

Decision: FastAPI
- Native async support (the store client is async end to end)
- Automatic OpenAPI documentation
- Pydantic integration for validation
- UploadFile for multipart file uploads

API Design:
- POST /snippets            save text, returns its code
- POST /files               upload a file, returns its code
- GET  /items/{code}        load a record (snippet content inline)
- GET  /items/{code}/content  download a file payload
- Store errors map to 404 (not found), 410 (expired), 503 (unavailable)
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

from ..errors import Expired, NotFound, PinPadError, StoreUnavailable
from ..store import ItemKind, RemoteStoreClient

logger = logging.getLogger(__name__)


# === Pydantic Models ===

class SnippetRequest(BaseModel):
    """Request to save a snippet."""
    content: str
    language: str = "plaintext"


class SaveResponse(BaseModel):
    """Code and expiry of a saved item."""
    code: str
    kind: str
    expires_at: float


class ItemResponse(BaseModel):
    """A loaded item."""
    code: str
    kind: str
    created_at: float
    expires_at: float
    content: Optional[str] = None
    language: Optional[str] = None
    name: Optional[str] = None
    size: Optional[int] = None
    mime: Optional[str] = None


def _http_error(error: PinPadError) -> HTTPException:
    if isinstance(error, NotFound):
        status = 404
    elif isinstance(error, Expired):
        status = 410
    elif isinstance(error, StoreUnavailable):
        status = 503
    else:
        status = 400
    return HTTPException(status_code=status, detail=error.message)


# === API Creation ===

def create_app(store: RemoteStoreClient) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        store: Unopened store client; opened and closed with the app lifespan

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown."""
        logger.info("Share store API starting...")
        await store.open()
        try:
            yield
        finally:
            await store.close()
            logger.info("Share store API stopping...")

    app = FastAPI(
        title="PinPad Share Store",
        description="Time-limited share codes for snippets and files",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Endpoints ===

    @app.get("/", tags=["General"])
    async def root():
        """API root - basic info."""
        return {
            "name": "PinPad Share Store",
            "version": "1.0.0",
        }

    @app.post("/snippets", response_model=SaveResponse, tags=["Store"])
    async def save_snippet(request: SnippetRequest):
        """Save a snippet for 72 hours."""
        try:
            item = await store.save_snippet(request.content, request.language)
        except PinPadError as e:
            raise _http_error(e)
        return SaveResponse(code=item.code, kind=item.kind.value, expires_at=item.expires_at)

    @app.post("/files", response_model=SaveResponse, tags=["Store"])
    async def save_file(file: UploadFile = File(...)):
        """Upload a file for 24 hours."""
        data = await file.read()
        try:
            item = await store.save_file(
                file.filename or "upload",
                data,
                file.content_type or "application/octet-stream",
            )
        except PinPadError as e:
            raise _http_error(e)
        return SaveResponse(code=item.code, kind=item.kind.value, expires_at=item.expires_at)

    @app.get("/items/{code}", response_model=ItemResponse, tags=["Store"])
    async def load_item(code: str):
        """Load an item by share code."""
        try:
            item = await store.load(code)
        except PinPadError as e:
            raise _http_error(e)
        return ItemResponse(
            code=item.code,
            kind=item.kind.value,
            created_at=item.created_at,
            expires_at=item.expires_at,
            content=item.content,
            language=item.language,
            name=item.name,
            size=item.size,
            mime=item.mime_type,
        )

    @app.get("/items/{code}/content", tags=["Store"])
    async def download_item(code: str):
        """Download the payload of a file item."""
        try:
            item = await store.load(code)
            if item.kind != ItemKind.FILE:
                raise NotFound("This code does not hold a file.")
            data = await store.fetch_file(item)
        except PinPadError as e:
            raise _http_error(e)
        return Response(
            content=data,
            media_type=item.mime_type or "application/octet-stream",
            headers={"Content-Disposition": f'attachment; filename="{item.name}"'},
        )

    return app


async def run_api_server(store: RemoteStoreClient, host: str = "0.0.0.0", port: int = 8080):
    """
    Run the API server.

    Args:
        store: Unopened store client
        host: Host to bind to
        port: Port to listen on
    """
    import uvicorn

    app = create_app(store)

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()

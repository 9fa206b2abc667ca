import logging
from contextlib import asynccontextmanager
from pathlib import Path

import asyncpg
import httpx
import jwt
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from rpg_admin import assets, storage
from rpg_admin.assets import AssetError, AssetRegistry
from rpg_admin.auth import authenticate, fetch_keyset, init_auth
from rpg_admin.config import Settings, load_settings
from rpg_admin.llm import LLMError
from rpg_admin.routes import router

logger = logging.getLogger(__name__)

NO_STORE = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

CORS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

PUBLIC_STATIC = {".css", ".js"}


def _failure(status: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status)


def _tool_file(request: Request, name: str) -> Path | None:
    """Resolve `name` under the tool directory; None if missing or outside it."""
    root = Path(request.app.state.settings.tool_dir).resolve()
    target = (root / name).resolve()
    if not target.is_relative_to(root) or not target.is_file():
        return None
    return target


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        # 401 and 405 carry no body
        if exc.status_code in (401, 405):
            return Response(status_code=exc.status_code, headers=getattr(exc, "headers", None))
        return _failure(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def request_invalid(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        field = str(errors[0]["loc"][-1]) if errors and errors[0].get("loc") else "request"
        return _failure(400, f"Invalid {field}")

    @app.exception_handler(storage.ValidationFailed)
    async def validation_failed(request: Request, exc: storage.ValidationFailed):
        return _failure(400, str(exc))

    @app.exception_handler(storage.NotFound)
    async def not_found(request: Request, exc: storage.NotFound):
        return _failure(404, str(exc))

    @app.exception_handler(storage.StoreUnavailable)
    async def store_unavailable(request: Request, exc: storage.StoreUnavailable):
        logger.error(f"{request.method} {request.url.path}: {exc}")
        return _failure(500, str(exc))

    @app.exception_handler(AssetError)
    async def asset_error(request: Request, exc: AssetError):
        logger.error(f"{request.method} {request.url.path}: {exc}")
        return _failure(500, str(exc))

    @app.exception_handler(asyncpg.PostgresError)
    async def database_error(request: Request, exc: asyncpg.PostgresError):
        logger.exception(f"Database error on {request.method} {request.url.path}")
        return _failure(500, "Database error")

    @app.exception_handler(ClientError)
    @app.exception_handler(BotoCoreError)
    async def object_store_error(request: Request, exc: Exception):
        logger.exception(f"Object store error on {request.method} {request.url.path}")
        return _failure(500, "Object store error")

    @app.exception_handler(LLMError)
    async def llm_error(request: Request, exc: LLMError):
        logger.warning(f"Generation backend unavailable: {exc}")
        return _failure(502, str(exc))

    # Runs outside the middleware stack, so headers are set here.
    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        response = _failure(500, "Internal error")
        response.headers.update(NO_STORE)
        response.headers["Access-Control-Allow-Origin"] = "*"
        return response


def _install_pages(app: FastAPI) -> None:
    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse("/login", status_code=303)

    @app.get("/login", include_in_schema=False)
    async def login(request: Request):
        page = _tool_file(request, "login.html")
        if page is None:
            return _failure(404, "Not found")
        return FileResponse(page)

    @app.get("/dashboard", include_in_schema=False)
    async def dashboard(request: Request):
        if authenticate(request) is None:
            logger.info("Dashboard access denied, redirecting to login")
            return RedirectResponse("/login", status_code=303)
        page = _tool_file(request, "index.html")
        if page is None:
            return _failure(404, "Not found")
        return FileResponse(page)

    @app.get("/static/{path:path}", include_in_schema=False)
    async def static_file(path: str, request: Request):
        """CSS and JS are public; everything else needs a valid token."""
        if Path(path).suffix.lower() not in PUBLIC_STATIC and authenticate(request) is None:
            logger.info(f"Protected static file denied: {path}")
            return Response(status_code=401)
        target = _tool_file(request, path)
        if target is None:
            return _failure(404, "Not found")
        return FileResponse(target)


async def _connect_backends(settings: Settings) -> None:
    """Open the pool, load the key set and build the registry.

    A backend that is down is logged and left unset; its requests answer
    500 (database, object store) or 401 (key set) until it comes back.
    """
    try:
        await storage.connect(settings.dsn)
    except storage.CONNECT_ERRORS as e:
        logger.error(f"Database unavailable at startup: {e}")

    try:
        keyset = await fetch_keyset(settings.jwks_url)
    except (httpx.HTTPError, ValueError, jwt.PyJWTError) as e:
        logger.error(f"Could not load signing keys from {settings.jwks_url}: {e}")
        keyset = None
    init_auth(keyset, settings.issuer, settings.cognito_client_id)

    try:
        registry = AssetRegistry(
            bucket=settings.s3_bucket,
            region_name=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
        )
    except BotoCoreError as e:
        logger.error(f"Object store unavailable at startup: {e}")
        registry = None
    assets.init_registry(registry)


def create_app(settings: Settings | None = None, connect: bool = True) -> FastAPI:
    """Build the app. With connect=False the lifespan opens no connections."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.settings is None:
            app.state.settings = load_settings()
        resolved: Settings = app.state.settings
        if connect:
            await _connect_backends(resolved)
            logger.info(f"Admin service ready (bucket={resolved.s3_bucket}, db={resolved.db_name})")
        try:
            yield
        finally:
            if connect:
                await storage.close_pool()

    app = FastAPI(title="RPG Admin", lifespan=lifespan)
    app.state.settings = settings

    @app.middleware("http")
    async def no_store(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers={**CORS, **NO_STORE})
        response = await call_next(request)
        response.headers.update(NO_STORE)
        response.headers["Access-Control-Allow-Origin"] = "*"
        return response

    _install_error_handlers(app)
    app.include_router(router, prefix="/api")
    _install_pages(app)
    return app


# Default app instance for uvicorn (settings are read at startup)
app = create_app()

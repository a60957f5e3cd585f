import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import router as auth_router
from core import db, settings
from core.logging_config import configure_logging
from works import router as works_router

# Settings are read lazily, so .env only has to be loaded before create_app().
load_dotenv()
configure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    # Initialize the DB pool once per process.
    settings.images_dir().mkdir(parents=True, exist_ok=True)
    await db.init_pool()
    try:
        yield
    finally:
        await db.close_pool()


async def http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request.", "details": jsonable_encoder(exc.errors())},
    )


async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error method=%s path=%s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": str(exc)})


def create_app() -> FastAPI:
    app = FastAPI(title="Portfolio Works API", lifespan=lifespan)

    # Allow the site frontend to call this API from the browser.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["POST", "GET", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_error)
    app.add_exception_handler(RequestValidationError, validation_error)
    app.add_exception_handler(Exception, unhandled_error)

    # Directory is created on startup; uploads create it on demand too.
    app.mount(
        "/images",
        StaticFiles(directory=settings.images_dir(), check_dir=False),
        name="images",
    )

    app.include_router(works_router.router, prefix="/work", tags=["work"])
    app.include_router(auth_router.router, prefix="/auth", tags=["auth"])
    app.include_router(auth_router.router, prefix="/user", tags=["auth"])

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/")
    def root() -> dict:
        return {"message": "portfolio works api"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.listen_port())

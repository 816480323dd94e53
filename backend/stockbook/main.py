
import logging
logging.basicConfig(level=logging.INFO)
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import errors, routes
from .config import Settings, load_settings
from .repository import open_store

# error kind -> HTTP status; first match wins
ERROR_STATUS_MAP = (
    (errors.ValidationError, 400),
    (errors.NotFound, 404),
    (errors.UniquenessViolation, 409),
    (errors.ReferentialIntegrityViolation, 409),
    (errors.InsufficientStock, 409),
    (errors.ExportError, 500),
)


async def stockbook_error_handler(_request: Request, exc: errors.StockbookError) -> JSONResponse:
    status_code = next((code for kind, code in ERROR_STATUS_MAP if isinstance(exc, kind)), 500)
    return JSONResponse(status_code=status_code, content={"status": "error", "detail": exc.message})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.store = open_store(settings)
        try:
            yield
        finally:
            app.state.store.close()

    app = FastAPI(title="Stockbook", lifespan=lifespan)
    app.state.settings = settings

    # the desktop shell serves its UI from the Vite dev server in development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(errors.StockbookError, stockbook_error_handler)
    app.include_router(routes.router)

    @app.get("/")
    def root():
        return {"message": "Stockbook inventory API"}

    return app


app = create_app()

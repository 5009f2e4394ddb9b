from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from authsvc.api.errors import register_exception_handlers
from authsvc.api.routers.auth import router as auth_router
from authsvc.shared.config import get_settings
from authsvc.shared.logging import configure_logging


configure_logging(get_settings().log_level)

app = FastAPI(title="Auth API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)
app.include_router(auth_router)


@app.get("/", response_class=PlainTextResponse)
def health() -> str:
    return "API is running"

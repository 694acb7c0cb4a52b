"""Создаёт FastAPI-приложение, подключает маршруты и middleware."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging_config import configure_logging
from app.core.service_session import is_service_request
from app.routers.engine import error_response
from app.routers.engine import router as engine_router

configure_logging(settings.log_level)

app = FastAPI(title=settings.app_name)


@app.middleware("http")
async def service_auth_middleware(request: Request, call_next):
    normalized_path = request.url.path.rstrip("/") or "/"

    # Preflight обрабатывает CORS, остальные запросы к движку только с service-role.
    if normalized_path.startswith("/engine") and request.method != "OPTIONS":
        if not is_service_request(request.headers.get("authorization"), request.headers.get("apikey")):
            return JSONResponse({"ok": False, "error": "Unauthorized"}, status_code=401)
    return await call_next(request)


# CORS добавляем последним, чтобы он был внешним слоем и отвечал и на 401.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ())) or "body"
    return error_response(f"Invalid {location}: {first.get('msg', 'malformed request')}", 400)


@app.get("/health")
async def health():
    return {"ok": True, "app": settings.app_name}


# Подключаем действия движка.
app.include_router(engine_router)

# main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from routers.v1 import api_v1
from services.errors import DomainError

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ------------------------------
# App bootstrap
# ------------------------------
app = FastAPI(title="Glassline MES API", version="1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
def domain_error_handler(request: Request, exc: DomainError):
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse({"detail": exc.message}, status_code=exc.status_code)


@app.get("/", include_in_schema=False)
def root():
    return {"service": "glassline", "status": "ok"}


app.include_router(api_v1, prefix="/api/v1")

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from glusterapi.log import new_request_id, request_id_ctx, setup_logging
from portal.api.v1 import api_router
from portal.clients.compute import ComputeClient
from portal.clients.ec2 import Ec2Client
from portal.core.config import settings
from portal.core.errors import PortalError
from portal.core.security import SigningKeyStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Portal started clusters=%s", [cluster.id for cluster in settings.clusters])
    yield


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description="Self-service API для томов OpenShift и облачных инстансов",
    lifespan=lifespan,
)

# Общие на процесс объекты: кэш ключей подписи, openstack- и boto3-клиенты (создаются лениво).
app.state.signing_keys = SigningKeyStore(
    settings.jwks_url,
    settings.signing_key_ttl_seconds,
    min_refresh_seconds=settings.jwks_min_refresh_seconds,
    timeout=settings.upstream_timeout_seconds,
)
app.state.compute = ComputeClient(settings)
app.state.ec2 = Ec2Client(settings.aws_region)

# Логирование настраиваем как можно раньше (до обработки запросов).
setup_logging("ssp-portal", json_logs=settings.json_logs, level=settings.log_level)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.frontend_cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api")


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.middleware("http")
async def request_id_middleware(request, call_next):
    """Проставляет request-id для корреляции логов.

    Значение из `X-Request-Id` клиента (или новое) уходит дальше в
    OpenShift/gluster-агент и возвращается в заголовке ответа.
    """
    rid = (request.headers.get("x-request-id") or "").strip() or new_request_id()
    token = request_id_ctx.set(rid)
    try:
        response = await call_next(request)
    finally:
        request_id_ctx.reset(token)
    response.headers["X-Request-Id"] = rid
    return response


@app.get("/healthz")
async def healthz():
    """Healthcheck для балансировщика."""
    return {"status": "ok"}


@app.get("/api/healthz")
async def healthz_api():
    """Healthcheck через frontend proxy (`/api/*` -> backend)."""
    return {"status": "ok"}

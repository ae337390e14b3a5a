"""HTTP API агента gluster-узла.

Запуск: `uvicorn glusterapi.main:create_app --factory --port 8080`.

- `/volume/*`: открытые эндпоинты мониторинга;
- `/sec/volume*`: операции над томом на всём кластере (вызывает портал);
- `/sec/lv*`: операции над LV только на этом узле (вызывают соседи).
"""

from __future__ import annotations

import logging
import secrets
from typing import Callable, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from glusterapi import monitoring
from glusterapi.config import GlusterSettings, get_settings
from glusterapi.errors import (
    ConfigurationError,
    ExecutionError,
    GlusterApiError,
    NotFoundError,
    UsageThresholdExceeded,
    ValidationError,
)
from glusterapi.log import new_request_id, request_id_ctx, setup_logging
from glusterapi.peers import API_USER, PeerClient, local_address
from glusterapi.runner import BashRunner, CommandRunner
from glusterapi.schemas import ApiResponse, CreateLVCommand, CreateVolumeCommand, DeleteVolumeCommand, GrowVolumeCommand, VolInfo
from glusterapi.volumes import VolumeService

logger = logging.getLogger(__name__)

basic_auth = HTTPBasic()

ERROR_STATUS: dict[type[GlusterApiError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    UsageThresholdExceeded: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ExecutionError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _status_for(exc: GlusterApiError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def get_service(request: Request) -> VolumeService:
    return request.app.state.volumes


def get_runner(request: Request) -> CommandRunner:
    return request.app.state.runner


def require_secret(request: Request, credentials: HTTPBasicCredentials = Depends(basic_auth)) -> None:
    expected: str = request.app.state.settings.secret
    user_ok = secrets.compare_digest(credentials.username.encode(), API_USER.encode())
    secret_ok = secrets.compare_digest(credentials.password.encode(), expected.encode())
    if not (user_ok and secret_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )


public = APIRouter()
sec = APIRouter(prefix="/sec", dependencies=[Depends(require_secret)])


@public.get("/healthz")
async def healthz():
    return {"status": "ok"}


@public.get("/volume/{pv_name}", response_model=VolInfo)
async def volume_info(pv_name: str, runner: CommandRunner = Depends(get_runner)):
    return await monitoring.volume_usage(runner, pv_name)


@public.get("/volume/{pv_name}/check", response_model=ApiResponse)
async def check_volume(pv_name: str, threshold: str = Query(""), runner: CommandRunner = Depends(get_runner)):
    await monitoring.check_volume_usage(runner, pv_name, threshold)
    return ApiResponse(message="OK")


@sec.post("/volume", response_model=ApiResponse)
async def create_volume(data: CreateVolumeCommand, service: VolumeService = Depends(get_service)):
    return ApiResponse(message=await service.create_volume(data.project, data.size))


@sec.post("/lv", response_model=ApiResponse)
async def create_lv(data: CreateLVCommand, service: VolumeService = Depends(get_service)):
    await service.create_lv(data.size, data.mountPoint, data.lvName)
    return ApiResponse(message="LV created")


@sec.post("/volume/grow", response_model=ApiResponse)
async def grow_volume(data: GrowVolumeCommand, service: VolumeService = Depends(get_service)):
    await service.grow_volume(data.pvName, data.newSize)
    return ApiResponse(message="Volume grown")


@sec.post("/lv/grow", response_model=ApiResponse)
async def grow_lv(data: GrowVolumeCommand, service: VolumeService = Depends(get_service)):
    await service.grow_lv(data.pvName, data.newSize)
    return ApiResponse(message="LV grown")


@sec.post("/volume/delete", response_model=ApiResponse)
async def delete_volume(data: DeleteVolumeCommand, service: VolumeService = Depends(get_service)):
    await service.delete_volume(data.lvName)
    return ApiResponse(message="Volume deleted")


@sec.post("/lv/delete", response_model=ApiResponse)
async def delete_lv(data: DeleteVolumeCommand, service: VolumeService = Depends(get_service)):
    await service.delete_lv(data.lvName)
    return ApiResponse(message="LV deleted")


def create_app(
    settings: Optional[GlusterSettings] = None,
    *,
    runner: Optional[CommandRunner] = None,
    peer_client: Optional[PeerClient] = None,
    local_address_fn: Callable[[], str] = local_address,
) -> FastAPI:
    """Собирает приложение.

    Без обязательных параметров (pool/vg/base path/secret) агент не стартует:
    `get_settings()` бросает `ConfigurationError`.
    """
    settings = (settings or get_settings()).require_complete()
    runner = runner or BashRunner()

    setup_logging("gluster-api", json_logs=settings.json_logs, level=settings.log_level)

    app = FastAPI(title="Gluster API", version="0.1.0")
    app.state.settings = settings
    app.state.runner = runner
    app.state.volumes = VolumeService(settings, runner, peer_client, local_address_fn=local_address_fn)

    @app.exception_handler(GlusterApiError)
    async def _gluster_error(request: Request, exc: GlusterApiError):
        return JSONResponse(status_code=_status_for(exc), content={"message": exc.message})

    @app.middleware("http")
    async def request_id_middleware(request, call_next):
        rid = (request.headers.get("x-request-id") or "").strip() or new_request_id()
        token = request_id_ctx.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers["X-Request-Id"] = rid
        return response

    app.include_router(public)
    app.include_router(sec)

    logger.info("Gluster api is configured port=%s vg=%s pool=%s", settings.port, settings.vg_name, settings.pool_name)
    return app

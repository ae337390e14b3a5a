"""Логирование агента и портала.

request-id приходит в `X-Request-Id` и пробрасывается дальше во все
исходящие запросы (портал -> агент -> соседи), чтобы одну операцию
можно было найти в логах всех сервисов и узлов.
"""

from __future__ import annotations

import json
import logging
import socket
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def new_request_id() -> str:
    return uuid.uuid4().hex


def get_request_id() -> str | None:
    return request_id_ctx.get()


def outgoing_headers() -> dict[str, str]:
    """Заголовки для исходящих запросов: тот же request-id, что у входящего."""
    return {"X-Request-Id": get_request_id() or new_request_id()}


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.request_id = get_request_id() or "-"  # type: ignore[attr-defined]
        return True


class JsonFormatter(logging.Formatter):
    """JSON-строка с именем сервиса и узла."""

    node = socket.gethostname()

    def __init__(self, service: str) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "service": self.service,
            "node": self.node,
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(service: str, json_logs: bool = False, level: str = "INFO") -> None:
    """Один stdout-handler на root logger.

    `JSON_LOGS=1` включает структурированный вывод, `LOG_LEVEL` задаёт уровень.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    if json_logs:
        handler.setFormatter(JsonFormatter(service))
    else:
        handler.setFormatter(
            logging.Formatter(f"%(asctime)s {service} %(levelname)s %(name)s request_id=%(request_id)s %(message)s")
        )

    # Сбрасываем дефолтные handlers, чтобы не дублировать вывод в uvicorn
    root.handlers = [handler]

"""Ошибки портала.

Обработчик в `portal.main` отдаёт их клиенту как `{"message": ...}` с кодом
`status_code`. Ответы внешних систем и исключения транспорта наружу не
уходят: клиенты их логируют и заворачивают в `ExecutionError`.
"""

from __future__ import annotations

from typing import Any, Iterable

GENERIC_API_ERROR = "Error when calling an upstream API. Please open an issue"
CONFIG_NOT_SET_ERROR = "This feature hasn't been configured correctly. Please contact the platform team"


class PortalError(Exception):
    status_code = 500
    message = GENERIC_API_ERROR

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


class ValidationError(PortalError):
    status_code = 400
    message = "Invalid api call - parameters did not match to method definition"


class NotFoundError(PortalError):
    status_code = 404
    message = "Not found"


class ExecutionError(PortalError):
    status_code = 502


class ConfigurationError(PortalError):
    status_code = 500
    message = CONFIG_NOT_SET_ERROR


class PermissionDeniedError(PortalError):
    status_code = 403

    def __init__(self, resource: Any, authorized: Iterable[str], message: str | None = None) -> None:
        self.resource = resource
        self.authorized = list(authorized)
        super().__init__(
            message
            or f"You don't have permissions on: {resource}. Authorized: {', '.join(self.authorized)}"
        )

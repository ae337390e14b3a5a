"""Ошибки gluster-агента.

Наружу (в HTTP-ответ и на соседние узлы) уходит только текст ошибки
из этой иерархии. Исходные ошибки shell/транспорта пишем в лог.
"""

from __future__ import annotations

COMMAND_EXECUTION_ERROR = "Error running command, see logs for details"


class GlusterApiError(Exception):
    """Базовая ошибка агента."""

    message = "Unexpected error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


class ValidationError(GlusterApiError):
    message = "Not all input values provided"


class NotFoundError(GlusterApiError):
    message = "Not found"


class ConfigurationError(GlusterApiError):
    message = "Must specify parameters 'poolName', 'basePath', 'vgName' and 'secret'"


class ExecutionError(GlusterApiError):
    message = COMMAND_EXECUTION_ERROR


class ParseError(ExecutionError):
    """Вывод внешней команды не совпал с ожидаемым форматом."""


class UsageThresholdExceeded(GlusterApiError):
    pass


class PeerFanOutError(ExecutionError):
    """Один из соседних узлов не применил изменение.

    Узлы из `succeeded_peers` уже в новом состоянии: отката нет.
    """

    def __init__(self, failed_peer: str, succeeded_peers: list[str]) -> None:
        super().__init__(COMMAND_EXECUTION_ERROR)
        self.failed_peer = failed_peer
        self.succeeded_peers = list(succeeded_peers)

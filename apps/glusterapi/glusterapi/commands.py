"""Последовательное выполнение списка локальных команд.

Правила:
- команды выполняются строго по порядку через `bash -c`;
- первая неуспешная команда прерывает список, оставшиеся не запускаются;
- уже выполненные команды не откатываются;
- наружу отдаём только общий `ExecutionError`, подробности пишем в лог.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Union

from glusterapi.errors import ExecutionError
from glusterapi.runner import CommandFailed, CommandRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExitTolerance:
    """Игнорировать код выхода `exit_code`, если в тексте команды есть `marker`."""

    exit_code: int
    marker: str

    def allows(self, command: str, failure: CommandFailed) -> bool:
        return self.marker in command and failure.returncode == self.exit_code


# lvextend возвращает 5, если LV уже нужного размера.
LVEXTEND_SAME_SIZE = ExitTolerance(exit_code=5, marker="lvextend")


@dataclass(frozen=True, slots=True)
class Command:
    text: str
    tolerance: ExitTolerance | None = None

    def __str__(self) -> str:
        return self.text


CommandLike = Union[Command, str]


def _as_command(item: CommandLike) -> Command:
    return item if isinstance(item, Command) else Command(item)


class LocalOrchestrator:
    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    async def run_sequence(self, commands: Iterable[CommandLike]) -> None:
        logger.info("Got new commands to execute")
        for item in commands:
            command = _as_command(item)
            try:
                out = await self.runner.run("bash", "-c", command.text)
            except CommandFailed as exc:
                if command.tolerance is not None and command.tolerance.allows(command.text, exc):
                    logger.info("Cmd: %s | tolerated %s", command.text, exc)
                    continue
                logger.error(
                    "Error executing command cmd=%s error=%s stdout=%s stderr=%s",
                    command.text,
                    exc,
                    exc.output.decode(errors="replace"),
                    exc.stderr.decode(errors="replace"),
                )
                raise ExecutionError() from exc
            logger.info("Cmd: %s | StdOut: %s", command.text, out.decode(errors="replace"))

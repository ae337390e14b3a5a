"""Запуск команд на локальном хосте."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class CommandFailed(Exception):
    """Команда завершилась с ненулевым кодом."""

    def __init__(self, command: str, returncode: int, output: bytes = b"", stderr: bytes = b"") -> None:
        self.command = command
        self.returncode = returncode
        self.output = output
        self.stderr = stderr
        super().__init__(f"exit status {returncode}")


class CommandRunner(Protocol):
    async def run(self, command: str, *args: str) -> bytes: ...


class BashRunner:
    """Выполняет команду и ждёт её завершения, возвращает stdout."""

    async def run(self, command: str, *args: str) -> bytes:
        try:
            proc = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            logger.warning("Executable not found command=%s error=%s", command, exc)
            raise CommandFailed(" ".join((command, *args)), 127) from exc
        except OSError as exc:
            # 126: как у shell для "нет прав на запуск"
            logger.warning("Could not start command=%s error=%s", command, exc)
            raise CommandFailed(" ".join((command, *args)), 126) from exc

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise CommandFailed(" ".join((command, *args)), proc.returncode, stdout, stderr)
        return stdout

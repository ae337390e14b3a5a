"""Заполненность томов по выводу `df`.

Формат вывода `df --output=size,used,source` не версионирован, поэтому
разбор вынесен в отдельную функцию и покрыт тестами на реальных строках:

    49664    2864 /dev/mapper/vg_slow-lv_test_pv5
"""

from __future__ import annotations

import logging
import re
import shlex

from glusterapi.errors import ExecutionError, NotFoundError, ParseError, UsageThresholdExceeded, ValidationError
from glusterapi.naming import device_mapper_name
from glusterapi.runner import CommandFailed, CommandRunner
from glusterapi.schemas import VolInfo

logger = logging.getLogger(__name__)

NUMBER_RE = re.compile(r"(\d+)")

# grep возвращает 1, если строка не найдена
GREP_NO_MATCH = 1


def parse_df_output(stdout: str) -> VolInfo:
    nums = NUMBER_RE.findall(stdout)
    if len(nums) < 2:
        logger.error("Unable to parse size/used values of df output=%r", stdout)
        raise ParseError()
    return VolInfo(totalKiloBytes=int(nums[0]), usedKiloBytes=int(nums[1]))


async def volume_usage(runner: CommandRunner, pv_name: str) -> VolInfo:
    # gl-ose-mon-a-pv3 => lv_ose--mon--a_pv3
    project, number = device_mapper_name(pv_name)
    pattern = shlex.quote(f"lv_{project}_pv{number}$")
    cmd = f"df --output=size,used,source | grep {pattern}"
    try:
        out = await runner.run("bash", "-c", cmd)
    except CommandFailed as exc:
        if exc.returncode == GREP_NO_MATCH:
            raise NotFoundError(f"PV {pv_name.replace('gl-', '', 1)} does not exist") from exc
        logger.error("Could not read usage pv=%s error=%s", pv_name, exc)
        raise ExecutionError() from exc
    return parse_df_output(out.decode(errors="replace"))


async def check_volume_usage(runner: CommandRunner, pv_name: str, threshold: str) -> None:
    try:
        limit = float(threshold)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Wrong threshold. Is not a valid integer") from exc

    info = await volume_usage(runner, pv_name)
    if info.totalKiloBytes == 0:
        logger.error("Volume reports zero size pv=%s", pv_name)
        raise ExecutionError()
    used = 100 / info.totalKiloBytes * info.usedKiloBytes
    if used > limit:
        raise UsageThresholdExceeded(f"Error used {used} is bigger than threshold: {limit}")

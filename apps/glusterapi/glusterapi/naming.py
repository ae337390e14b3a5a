"""Имена томов и проверка размеров.

Чистые функции без побочных эффектов. Используются агентом и порталом.

Схема имён для проекта `my-project` и номера 1:
- LV:            lv_my-project_pv1
- gluster volume: vol_my-project_pv1
- точка монтирования: <base>/my-project/pv1
- PV в OpenShift: gl-my-project-pv1
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from glusterapi.errors import ParseError, ValidationError

logger = logging.getLogger(__name__)

MAX_MB = 1024

SIZE_RE = re.compile(r"^(\d+)([MG])$")

# Имя проекта OpenShift (DNS-метка). Все имена ниже подставляются в `bash -c`,
# поэтому принимаются только эти символы.
PROJECT_PATTERN = r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?"
PROJECT_RE = re.compile(rf"^{PROJECT_PATTERN}$")
SHORT_NAME_RE = re.compile(rf"^{PROJECT_PATTERN}_pv\d+$")
LV_NAME_RE = re.compile(rf"^lv_{PROJECT_PATTERN}_pv\d+$")
VOLUME_NAME_RE = re.compile(rf"^vol_{PROJECT_PATTERN}_pv\d+$")
PV_NAME_RE = re.compile(rf"^gl-({PROJECT_PATTERN})-pv(\d+)$")
MOUNT_POINT_RE = re.compile(rf"^(?:/[A-Za-z0-9_-][A-Za-z0-9_.-]*)*/{PROJECT_PATTERN}/pv\d+$")

SUFFIX_WRONG_ERROR = (
    "Invalid size. Size must be int followed by suffix (e.g. 100M). Allowed suffixes are 'G/M'. You sent: {size}"
)
NFS_SUFFIX_ERROR = "Invalid size. Format: Digits followed by G (e.g. 1G)."
MB_TOO_BIG_ERROR = "Your size is to big for suffix 'M' use 'G' instead"
GB_TOO_BIG_ERROR = "Max allowed size exceeded. Max allowed is: {max_gb}G"
MB_TOO_SMALL_ERROR = "This size is not allowed. Minimal size: {min_mb}M"


@dataclass(frozen=True, slots=True)
class SizeLimit:
    max_gigabytes: int
    max_megabytes: int = MAX_MB


@dataclass(frozen=True, slots=True)
class VolumeDescriptor:
    project: str
    sequence_number: int
    size: str

    @property
    def short_name(self) -> str:
        return f"{self.project}_pv{self.sequence_number}"

    @property
    def lv_name(self) -> str:
        return f"lv_{self.short_name}"

    @property
    def volume_name(self) -> str:
        return f"vol_{self.short_name}"

    def mount_point(self, base_path: str) -> str:
        return f"{base_path}/{self.project}/pv{self.sequence_number}"


def validate_size(size: str, limit: SizeLimit, technology: str = "gluster", min_megabytes: int = 0) -> None:
    """Проверяет строку размера вида `500M` / `10G`.

    - `M` не больше 1024, иначе просим указать размер в `G`;
    - `G` не больше настроенного потолка;
    - для nfs допускается только `G`.
    """
    logger.info("Checking size of %s", size)
    match = SIZE_RE.fullmatch(size or "")
    if technology == "nfs" and (match is None or match.group(2) != "G"):
        raise ValidationError(NFS_SUFFIX_ERROR)
    if match is None:
        raise ValidationError(SUFFIX_WRONG_ERROR.format(size=size))

    value, suffix = int(match.group(1)), match.group(2)
    if suffix == "M":
        if value > limit.max_megabytes:
            raise ValidationError(MB_TOO_BIG_ERROR)
        if value < min_megabytes:
            raise ValidationError(MB_TOO_SMALL_ERROR.format(min_mb=min_megabytes))
        return
    if value > limit.max_gigabytes:
        raise ValidationError(GB_TOO_BIG_ERROR.format(max_gb=limit.max_gigabytes))


def validate_size_format(size: str) -> None:
    """Только формат, без потолка: для команд, пришедших от соседа."""
    if not SIZE_RE.fullmatch(size or ""):
        raise ValidationError(SUFFIX_WRONG_ERROR.format(size=size))


def validate_name(value: str, pattern: re.Pattern[str], what: str) -> None:
    if not pattern.fullmatch(value or ""):
        logger.warning("Rejected %s=%r", what, value)
        raise ValidationError(f"Invalid {what}: {value}")


def parse_lv_names(lvs_output: str) -> list[str]:
    """Имена LV из вывода `lvs -o lv_name` (без заголовка и пустых строк)."""
    names = []
    for line in lvs_output.splitlines():
        name = line.strip()
        if not name or name == "LV":
            continue
        names.append(name)
    return names


def next_sequence_number(project: str, existing_names: list[str]) -> int:
    """Следующий номер тома проекта: максимум существующих + 1.

    Номера после удаления не переиспользуются: pv1, pv3, pv27 -> 28.
    """
    prefix = f"lv_{project}_pv"
    max_nr = 0
    for name in existing_names:
        name = name.strip()
        if not name.startswith(prefix):
            continue
        suffix = name[len(prefix):]
        if not suffix.isdigit():
            logger.error("Could not parse number out of: %s", name)
            raise ParseError()
        max_nr = max(max_nr, int(suffix))
    return max_nr + 1


def mount_path(volume_name: str, base_path: str) -> str:
    """`vol_<project>_pv<N>` -> `<base>/<project>/pv<N>`.

    Это замена подстрок, а не разбор: имя проекта не должно содержать `vol_` или `_pv`.
    """
    path = volume_name.replace("vol_", base_path + "/", 1)
    return path.replace("_pv", "/pv", 1)


def lv_name_for_volume(volume_name: str) -> str:
    return volume_name.replace("vol_", "lv_", 1)


def pv_name_for_volume(short_name: str) -> str:
    """`my-project_pv1` -> `gl-my-project-pv1` (OpenShift не допускает `_`)."""
    return "gl-" + short_name.replace("_", "-", 1)


def device_mapper_name(pv_name: str) -> tuple[str, str]:
    """`gl-project-long-pv20` -> (`project--long`, `20`).

    device-mapper экранирует `-` в имени LV удвоением.
    """
    match = PV_NAME_RE.fullmatch(pv_name or "")
    if match is None:
        logger.warning("Rejected pv name=%r", pv_name)
        raise ValidationError(f"Invalid pv name: {pv_name}")
    project, number = match.groups()
    return project.replace("-", "--"), number

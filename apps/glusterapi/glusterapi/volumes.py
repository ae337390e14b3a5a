"""Жизненный цикл gluster-томов: создание, расширение, удаление.

Каждая операция над LV сначала рассылается соседям (`FanOut`), затем
выполняется локально. Все шаги строго последовательные.
"""

from __future__ import annotations

import logging
from typing import Callable

from glusterapi.commands import LVEXTEND_SAME_SIZE, Command, LocalOrchestrator
from glusterapi.config import GlusterSettings
from glusterapi.errors import ExecutionError, ValidationError
from glusterapi.naming import (
    LV_NAME_RE,
    MOUNT_POINT_RE,
    PROJECT_RE,
    SHORT_NAME_RE,
    VOLUME_NAME_RE,
    VolumeDescriptor,
    lv_name_for_volume,
    mount_path,
    next_sequence_number,
    parse_lv_names,
    validate_name,
    validate_size,
    validate_size_format,
)
from glusterapi.peers import FanOut, PeerClient, local_address
from glusterapi.runner import CommandFailed, CommandRunner

logger = logging.getLogger(__name__)

XFS_MOUNT_OPTIONS = "rw,inode64,noatime,nouuid"


class VolumeService:
    def __init__(
        self,
        settings: GlusterSettings,
        runner: CommandRunner,
        peer_client: PeerClient | None = None,
        *,
        local_address_fn: Callable[[], str] = local_address,
    ) -> None:
        self.settings = settings
        self.runner = runner
        self.local = LocalOrchestrator(runner)
        self.fanout = FanOut(
            runner,
            peer_client
            or PeerClient(settings.port, settings.secret, timeout=settings.peer_timeout_seconds),
        )
        self.local_address = local_address_fn

    # --- create ---------------------------------------------------------

    async def create_volume(self, project: str, size: str) -> str:
        """Создаёт LV на всех узлах и распределённый том поверх них.

        Возвращает `<project>_pv<N>`.
        """
        if not project or not size:
            raise ValidationError()
        validate_size(size, self.settings.size_limit)
        validate_name(project, PROJECT_RE, "project")

        volume = VolumeDescriptor(project, await self._next_volume_number(project), size)
        mount_point = volume.mount_point(self.settings.base_path)

        peers = await self.fanout.apply(
            "/sec/lv",
            {"size": size, "mountPoint": mount_point, "lvName": volume.lv_name},
            lambda: self.create_lv(size, mount_point, volume.lv_name),
        )
        await self.local.run_sequence(self.cluster_volume_commands(volume, peers, mount_point))

        logger.info("Volume created volume=%s size=%s peers=%s", volume.volume_name, size, peers)
        return volume.short_name

    async def _next_volume_number(self, project: str) -> int:
        try:
            out = await self.runner.run("bash", "-c", "lvs -o lv_name")
        except CommandFailed as exc:
            logger.error("Could not count existing lvs for project=%s error=%s", project, exc)
            raise ExecutionError() from exc
        return next_sequence_number(project, parse_lv_names(out.decode(errors="replace")))

    async def create_lv(self, size: str, mount_point: str, lv_name: str) -> None:
        if not size or not mount_point or not lv_name:
            raise ValidationError()
        validate_size_format(size)
        validate_name(mount_point, MOUNT_POINT_RE, "mount point")
        validate_name(lv_name, LV_NAME_RE, "lv name")
        await self.local.run_sequence(self.create_lv_commands(size, mount_point, lv_name))

    def create_lv_commands(self, size: str, mount_point: str, lv_name: str) -> list[Command]:
        vg, pool = self.settings.vg_name, self.settings.pool_name
        device = f"/dev/{vg}/{lv_name}"
        brick = f"{mount_point}/brick"
        return [
            Command(f"mkdir -p {mount_point}"),
            Command(f"lvcreate -V {size} -T {vg}/{pool} -n {lv_name}"),
            Command(f"mkfs.xfs -i size=512 -n size=8192 {device}"),
            Command(f'echo "{device} {mount_point} xfs {XFS_MOUNT_OPTIONS} 1 2" | tee -a /etc/fstab > /dev/null '),
            Command(f"mount -o {XFS_MOUNT_OPTIONS} {device} {mount_point}"),
            Command(f"mkdir {brick}"),
            # SELinux
            Command(f"semanage fcontext -a -t glusterd_brick_t {brick}"),
            Command(f"restorecon -Rv {brick}"),
            # UID/GID из OpenShift
            Command(f"chown nfsnobody.nfsnobody {brick}"),
            Command(f"chmod 777 {brick}"),
        ]

    def cluster_volume_commands(self, volume: VolumeDescriptor, peers: list[str], mount_point: str) -> list[Command]:
        servers = [*peers, self.local_address()]
        bricks = " ".join(f"{server}:{mount_point}/brick" for server in servers)
        name = volume.volume_name
        return [
            Command(f"gluster volume create {name} replica {self.settings.replicas} {bricks} --mode=script"),
            Command(f"gluster volume start {name}"),
            Command(f"gluster volume set {name} user.smb disable"),
            Command(f"gluster volume set {name} user.cifs disable"),
        ]

    # --- grow -----------------------------------------------------------

    async def grow_volume(self, pv_name: str, new_size: str) -> None:
        if not pv_name or not new_size:
            raise ValidationError()
        validate_size(new_size, self.settings.size_limit)
        validate_name(pv_name, SHORT_NAME_RE, "pv name")

        await self.fanout.apply(
            "/sec/lv/grow",
            {"pvName": pv_name, "newSize": new_size},
            lambda: self.grow_lv(pv_name, new_size),
        )
        logger.info("Volume grown pv=%s new_size=%s", pv_name, new_size)

    async def grow_lv(self, pv_name: str, new_size: str) -> None:
        if not pv_name or not new_size:
            raise ValidationError()
        validate_size_format(new_size)
        validate_name(pv_name, SHORT_NAME_RE, "pv name")
        device = f"/dev/{self.settings.vg_name}/lv_{pv_name}"
        await self.local.run_sequence(
            [
                Command(f"lvextend -L {new_size} {device}", tolerance=LVEXTEND_SAME_SIZE),
                Command(f"xfs_growfs {device}"),
            ]
        )

    # --- delete ---------------------------------------------------------

    async def delete_volume(self, volume_name: str) -> None:
        if not volume_name:
            raise ValidationError()
        validate_name(volume_name, VOLUME_NAME_RE, "volume name")

        await self.local.run_sequence(
            [
                Command(f"gluster volume stop {volume_name} --mode=script"),
                Command(f"gluster volume delete {volume_name} --mode=script"),
            ]
        )
        # В поле lvName уходит имя тома (vol_...): соседи сами выводят из него LV и путь.
        await self.fanout.apply(
            "/sec/lv/delete",
            {"lvName": volume_name},
            lambda: self.delete_lv(volume_name),
        )
        logger.info("Volume deleted volume=%s", volume_name)

    async def delete_lv(self, volume_name: str) -> None:
        if not volume_name:
            raise ValidationError()
        validate_name(volume_name, VOLUME_NAME_RE, "volume name")
        path = mount_path(volume_name, self.settings.base_path)
        lv_name = lv_name_for_volume(volume_name)
        vg = self.settings.vg_name
        await self.local.run_sequence(
            [
                Command(f"sed -i '\\#/dev/{vg}/{lv_name}#d' /etc/fstab"),
                Command(f"umount {path}"),
                Command(f"lvremove --yes /dev/{vg}/{lv_name}"),
                # --ignore-fail-on-non-empty: удаляем только пустых родителей
                Command(f"rmdir --parents --ignore-fail-on-non-empty {path}"),
            ]
        )

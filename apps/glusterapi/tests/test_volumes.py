import httpx
import pytest

from glusterapi.errors import ExecutionError, PeerFanOutError, ValidationError
from glusterapi.peers import PeerClient
from glusterapi.volumes import VolumeService

pytestmark = pytest.mark.asyncio

PEER_STATUS = "Hostname: 10.0.0.1\nHostname: 10.0.0.2\n"


def build(settings, runner, peers, local_ip):
    client = PeerClient(settings.port, settings.secret, transport=httpx.MockTransport(peers))
    return VolumeService(settings, runner, client, local_address_fn=lambda: local_ip)


def lv_commands(mount_point: str, lv_name: str, size: str) -> list[str]:
    device = f"/dev/vgname/{lv_name}"
    brick = f"{mount_point}/brick"
    return [
        f"bash -c mkdir -p {mount_point}",
        f"bash -c lvcreate -V {size} -T vgname/pool -n {lv_name}",
        f"bash -c mkfs.xfs -i size=512 -n size=8192 {device}",
        f'bash -c echo "{device} {mount_point} xfs rw,inode64,noatime,nouuid 1 2" | tee -a /etc/fstab > /dev/null ',
        f"bash -c mount -o rw,inode64,noatime,nouuid {device} {mount_point}",
        f"bash -c mkdir {brick}",
        f"bash -c semanage fcontext -a -t glusterd_brick_t {brick}",
        f"bash -c restorecon -Rv {brick}",
        f"bash -c chown nfsnobody.nfsnobody {brick}",
        f"bash -c chmod 777 {brick}",
    ]


async def test_create_volume_end_to_end(settings, make_runner, make_peers, local_ip):
    runner = make_runner(outputs=["  LV\n  lv_other_pv1\n", PEER_STATUS])
    peers = make_peers(timeline=runner.commands)
    service = build(settings, runner, peers, local_ip)

    assert await service.create_volume("my-project", "10M") == "my-project_pv1"

    mp = "/basepath/my-project/pv1"
    vol = "vol_my-project_pv1"
    bricks = f"10.0.0.1:{mp}/brick 10.0.0.2:{mp}/brick {local_ip}:{mp}/brick"
    assert runner.commands == [
        "bash -c lvs -o lv_name",
        "bash -c gluster peer status | grep Hostname",
        "POST 10.0.0.1/sec/lv",
        "POST 10.0.0.2/sec/lv",
        *lv_commands(mp, "lv_my-project_pv1", "10M"),
        f"bash -c gluster volume create {vol} replica 2 {bricks} --mode=script",
        f"bash -c gluster volume start {vol}",
        f"bash -c gluster volume set {vol} user.smb disable",
        f"bash -c gluster volume set {vol} user.cifs disable",
    ]
    assert peers.calls[0][2] == {"size": "10M", "mountPoint": mp, "lvName": "lv_my-project_pv1"}


async def test_create_volume_continues_numbering(settings, make_runner, make_peers, local_ip):
    runner = make_runner(outputs=["lv_my-project_pv1\nlv_my-project_pv4\n", ""])
    service = build(settings, runner, make_peers(), local_ip)

    assert await service.create_volume("my-project", "1G") == "my-project_pv5"
    assert "bash -c mkdir -p /basepath/my-project/pv5" in runner.commands


async def test_create_volume_peer_failure_leaves_local_untouched(settings, make_runner, make_peers, local_ip):
    runner = make_runner(outputs=["", PEER_STATUS])
    peers = make_peers(statuses={"10.0.0.2": 500}, timeline=runner.commands)
    service = build(settings, runner, peers, local_ip)

    with pytest.raises(PeerFanOutError) as exc:
        await service.create_volume("my-project", "10M")

    assert exc.value.succeeded_peers == ["10.0.0.1"]
    assert runner.commands[-1] == "POST 10.0.0.2/sec/lv"
    assert not any("lvcreate" in c or "gluster volume" in c for c in runner.commands)


@pytest.mark.parametrize("project, size", [("", "10M"), ("p", ""), ("p", "2000M"), ("p", "101G")])
async def test_create_volume_rejects_bad_input_before_any_command(settings, make_runner, make_peers, local_ip, project, size):
    runner = make_runner()
    service = build(settings, runner, make_peers(), local_ip)

    with pytest.raises(ValidationError):
        await service.create_volume(project, size)
    assert runner.commands == []


async def test_create_lv_local_failure_aborts(settings, make_runner, make_peers, local_ip):
    runner = make_runner(failures={"mkfs.xfs": 1})
    service = build(settings, runner, make_peers(), local_ip)

    with pytest.raises(ExecutionError):
        await service.create_lv("10M", "/basepath/p/pv1", "lv_p_pv1")
    assert runner.commands[-1].startswith("bash -c mkfs.xfs")
    assert len(runner.commands) == 3


async def test_grow_volume(settings, make_runner, make_peers, local_ip):
    runner = make_runner(outputs=[PEER_STATUS])
    peers = make_peers(timeline=runner.commands)
    service = build(settings, runner, peers, local_ip)

    await service.grow_volume("my-project_pv1", "20M")

    assert runner.commands == [
        "bash -c gluster peer status | grep Hostname",
        "POST 10.0.0.1/sec/lv/grow",
        "POST 10.0.0.2/sec/lv/grow",
        "bash -c lvextend -L 20M /dev/vgname/lv_my-project_pv1",
        "bash -c xfs_growfs /dev/vgname/lv_my-project_pv1",
    ]
    assert peers.calls[0][2] == {"pvName": "my-project_pv1", "newSize": "20M"}


async def test_grow_lv_to_same_size_still_grows_filesystem(settings, make_runner, make_peers, local_ip):
    runner = make_runner(failures={"lvextend": 5})
    service = build(settings, runner, make_peers(), local_ip)

    await service.grow_lv("p_pv1", "10M")
    assert runner.commands[-1] == "bash -c xfs_growfs /dev/vgname/lv_p_pv1"


async def test_grow_volume_validates_size(settings, make_runner, make_peers, local_ip):
    runner = make_runner()
    service = build(settings, runner, make_peers(), local_ip)
    with pytest.raises(ValidationError):
        await service.grow_volume("p_pv1", "500G")
    assert runner.commands == []


async def test_delete_volume(settings, make_runner, make_peers, local_ip):
    runner = make_runner(outputs=["", "", PEER_STATUS])
    peers = make_peers(timeline=runner.commands)
    service = build(settings, runner, peers, local_ip)

    await service.delete_volume("vol_my-project_pv1")

    assert runner.commands == [
        "bash -c gluster volume stop vol_my-project_pv1 --mode=script",
        "bash -c gluster volume delete vol_my-project_pv1 --mode=script",
        "bash -c gluster peer status | grep Hostname",
        "POST 10.0.0.1/sec/lv/delete",
        "POST 10.0.0.2/sec/lv/delete",
        "bash -c sed -i '\\#/dev/vgname/lv_my-project_pv1#d' /etc/fstab",
        "bash -c umount /basepath/my-project/pv1",
        "bash -c lvremove --yes /dev/vgname/lv_my-project_pv1",
        "bash -c rmdir --parents --ignore-fail-on-non-empty /basepath/my-project/pv1",
    ]
    assert peers.calls[0][2] == {"lvName": "vol_my-project_pv1"}


async def test_delete_volume_stop_failure_skips_peers(settings, make_runner, make_peers, local_ip):
    runner = make_runner(failures={"volume stop": 1})
    peers = make_peers()
    service = build(settings, runner, peers, local_ip)

    with pytest.raises(ExecutionError):
        await service.delete_volume("vol_p_pv1")
    assert peers.calls == []


@pytest.mark.parametrize("project", ["p;reboot", "p'$(id)'", "My-Project", "p_pv1", "-p", "p\nid"])
async def test_create_volume_rejects_unsafe_project(settings, make_runner, make_peers, local_ip, project):
    runner = make_runner()
    with pytest.raises(ValidationError):
        await build(settings, runner, make_peers(), local_ip).create_volume(project, "10M")
    assert runner.commands == []


@pytest.mark.parametrize(
    "size, mount_point, lv_name",
    [
        ("10M", "/basepath/p/pv1;reboot", "lv_p_pv1"),
        ("10M", "/basepath/../etc/pv1", "lv_p_pv1"),
        ("10M", "/basepath/p/pv1", "lv_p_pv1 -n other"),
        ("10M", "/basepath/p/pv1", "lv_p'$(id)'_pv1"),
        ("10M && id", "/basepath/p/pv1", "lv_p_pv1"),
    ],
)
async def test_create_lv_rejects_unsafe_arguments(settings, make_runner, make_peers, local_ip, size, mount_point, lv_name):
    runner = make_runner()
    with pytest.raises(ValidationError):
        await build(settings, runner, make_peers(), local_ip).create_lv(size, mount_point, lv_name)
    assert runner.commands == []


@pytest.mark.parametrize("pv_name, size", [("p_pv1;id", "10M"), ("p_pv1", "10M;id"), ("../p_pv1", "10M")])
async def test_grow_lv_rejects_unsafe_arguments(settings, make_runner, make_peers, local_ip, pv_name, size):
    runner = make_runner()
    with pytest.raises(ValidationError):
        await build(settings, runner, make_peers(), local_ip).grow_lv(pv_name, size)
    assert runner.commands == []


@pytest.mark.parametrize("volume_name", ["vol_p_pv1#d' /etc/passwd; echo '", "vol_p_pv1 ; id", "lv_p_pv1"])
async def test_delete_rejects_unsafe_volume_names(settings, make_runner, make_peers, local_ip, volume_name):
    runner = make_runner()
    service = build(settings, runner, make_peers(), local_ip)
    with pytest.raises(ValidationError):
        await service.delete_volume(volume_name)
    with pytest.raises(ValidationError):
        await service.delete_lv(volume_name)
    assert runner.commands == []

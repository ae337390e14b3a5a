import logging

import pytest

from glusterapi.commands import LVEXTEND_SAME_SIZE, Command, ExitTolerance, LocalOrchestrator
from glusterapi.errors import COMMAND_EXECUTION_ERROR, ExecutionError

pytestmark = pytest.mark.asyncio


async def test_commands_run_in_order_via_bash(make_runner):
    runner = make_runner()
    await LocalOrchestrator(runner).run_sequence(["test", Command("test2")])
    assert runner.commands == ["bash -c test", "bash -c test2"]


async def test_failure_aborts_remaining_commands(make_runner):
    runner = make_runner(failures={"B": 1})
    with pytest.raises(ExecutionError) as exc:
        await LocalOrchestrator(runner).run_sequence(["A", "B", "C"])

    assert runner.commands == ["bash -c A", "bash -c B"]
    assert exc.value.message == COMMAND_EXECUTION_ERROR


async def test_failure_details_are_logged_not_returned(make_runner, caplog):
    runner = make_runner(failures={"mount": 32})
    with caplog.at_level(logging.ERROR):
        with pytest.raises(ExecutionError) as exc:
            await LocalOrchestrator(runner).run_sequence(["mount /dev/x /mnt"])

    assert "exit status 32" not in str(exc.value)
    assert "exit status 32" in caplog.text
    assert "mount /dev/x /mnt" in caplog.text


async def test_lvextend_same_size_does_not_abort(make_runner):
    runner = make_runner(failures={"lvextend": 5})
    await LocalOrchestrator(runner).run_sequence(
        [
            Command("lvextend -L 10M /dev/vg/lv_pv", tolerance=LVEXTEND_SAME_SIZE),
            Command("xfs_growfs /dev/vg/lv_pv"),
        ]
    )
    assert runner.commands == ["bash -c lvextend -L 10M /dev/vg/lv_pv", "bash -c xfs_growfs /dev/vg/lv_pv"]


async def test_lvextend_other_exit_code_aborts(make_runner):
    runner = make_runner(failures={"lvextend": 3})
    with pytest.raises(ExecutionError):
        await LocalOrchestrator(runner).run_sequence(
            [
                Command("lvextend -L 10M /dev/vg/lv_pv", tolerance=LVEXTEND_SAME_SIZE),
                Command("xfs_growfs /dev/vg/lv_pv"),
            ]
        )
    assert len(runner.commands) == 1


async def test_tolerance_requires_marker_in_command_text(make_runner):
    runner = make_runner(failures={"lvresize": 5})
    with pytest.raises(ExecutionError):
        await LocalOrchestrator(runner).run_sequence([Command("lvresize -L 1G x", tolerance=ExitTolerance(5, "lvextend"))])


async def test_plain_string_has_no_tolerance(make_runner):
    runner = make_runner(failures={"lvextend": 5})
    with pytest.raises(ExecutionError):
        await LocalOrchestrator(runner).run_sequence(["lvextend -L 10M /dev/vg/lv_pv", "xfs_growfs /dev/vg/lv_pv"])
    assert len(runner.commands) == 1

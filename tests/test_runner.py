# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Tests for stage execution against real child processes."""

import logging
import os
import subprocess
import sys
import time

import psutil
import pytest

from mlcbuild.pipeline import (
    Command,
    ExecutionError,
    GeneratedSettings,
    Stage,
    StageName,
    StageRunner,
)
from mlcbuild.pipeline.runner import terminate_process_tree

from .helpers import python_command


def make_stage(tmp_path, *codes, name=StageName.COMPILE, expect_output=None, settings_file=None):
    commands = tuple(
        Command(python_command(code), cwd=tmp_path, expect_output=expect_output)
        for code in codes
    )
    return Stage(name=name, commands=commands, settings_file=settings_file)


class TestStageRunner:

    def test_successful_command(self, tmp_path):
        stage = make_stage(tmp_path, "print('hello')")

        result = StageRunner().run(stage)

        assert result.ok
        assert result.exit_code == 0
        assert result.stdout_tail == ("hello",)
        assert result.elapsed >= 0
        assert result.name is StageName.COMPILE

    def test_nonzero_exit_is_reported_not_raised(self, tmp_path):
        stage = make_stage(tmp_path, "import sys; sys.stderr.write('bad things\\n'); sys.exit(3)")

        result = StageRunner().run(stage)

        assert not result.ok
        assert result.exit_code == 3
        assert result.stderr_tail == ("bad things",)
        assert "bad things" in result.diagnostic_tail()

    def test_tail_is_bounded(self, tmp_path):
        stage = make_stage(tmp_path, "for i in range(100): print(f'line {i}')")

        result = StageRunner(tail_lines=10).run(stage)

        assert len(result.stdout_tail) == 10
        assert result.stdout_tail[0] == "line 90"
        assert result.stdout_tail[-1] == "line 99"

    def test_commands_run_in_working_directory(self, tmp_path):
        stage = make_stage(tmp_path, "import os; print(os.getcwd())")

        result = StageRunner().run(stage)

        assert os.path.samefile(result.stdout_tail[-1], tmp_path)

    def test_first_failure_ends_stage(self, tmp_path):
        marker = tmp_path / "second-ran"
        stage = make_stage(
            tmp_path,
            "import sys; sys.exit(1)",
            f"open({str(marker)!r}, 'w').close()",
        )

        result = StageRunner().run(stage)

        assert result.exit_code == 1
        assert not marker.exists()

    def test_all_commands_run_on_success(self, tmp_path):
        marker = tmp_path / "second-ran"
        stage = make_stage(tmp_path, "pass", f"open({str(marker)!r}, 'w').close()")

        assert StageRunner().run(stage).ok
        assert marker.exists()

    def test_expected_marker_present(self, tmp_path):
        stage = make_stage(
            tmp_path, "print('PROBE_OK 1.0')", name=StageName.VALIDATE, expect_output="PROBE_OK"
        )

        assert StageRunner().run(stage).ok

    def test_missing_marker_fails_despite_zero_exit(self, tmp_path):
        stage = make_stage(
            tmp_path, "print('something else')", name=StageName.VALIDATE, expect_output="PROBE_OK"
        )

        result = StageRunner().run(stage)

        assert result.exit_code == 0
        assert not result.ok
        assert "PROBE_OK" in result.error

    def test_missing_program_raises_execution_error(self, tmp_path):
        stage = Stage(
            name=StageName.CONFIGURE,
            commands=(Command(("mlcbuild-no-such-tool-xyz", "--version"), cwd=tmp_path),),
        )

        with pytest.raises(ExecutionError) as exc_info:
            StageRunner().run(stage)

        assert exc_info.value.program == "mlcbuild-no-such-tool-xyz"
        assert exc_info.value.exit_code == 69

    def test_settings_written_before_first_command(self, tmp_path):
        settings_file = tmp_path / "build" / "config.cmake"
        stage = make_stage(
            tmp_path,
            f"print(open({str(settings_file)!r}).read().strip())",
            name=StageName.CONFIGURE,
            settings_file=settings_file,
        )

        result = StageRunner().run(stage, GeneratedSettings([("USE_VULKAN", True)]))

        assert result.ok
        assert result.stdout_tail == ("set(USE_VULKAN ON)",)

    def test_settings_required_when_stage_declares_file(self, tmp_path):
        stage = make_stage(tmp_path, "pass", settings_file=tmp_path / "config.cmake")

        with pytest.raises(ValueError):
            StageRunner().run(stage)

    def test_output_is_logged_by_stream(self, tmp_path, caplog):
        stage = make_stage(tmp_path, "import sys; print('to stdout'); sys.stderr.write('to stderr\\n')")

        with caplog.at_level(logging.INFO, logger="mlcbuild.pipeline.runner"):
            StageRunner().run(stage)

        levels = {record.getMessage(): record.levelno for record in caplog.records}
        assert levels["to stdout"] == logging.INFO
        assert levels["to stderr"] == logging.WARNING

    def test_environment_is_passed_to_children(self, tmp_path):
        stage = make_stage(tmp_path, "import os; print(os.environ['MLCBUILD_TEST_VALUE'])")
        env = dict(os.environ, MLCBUILD_TEST_VALUE="forwarded")

        result = StageRunner(env=env).run(stage)

        assert result.stdout_tail == ("forwarded",)


def _finished(proc: psutil.Process) -> bool:
    # Orphans may linger as zombies until the init process reaps them
    try:
        return proc.status() == psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return True


class TestTerminateProcessTree:

    def test_unknown_pid_is_ignored(self):
        # PIDs are bounded well below this on every supported platform
        terminate_process_tree(2**22 + 12345, timeout=0.1)

    def test_terminates_child_tree(self):
        code = (
            "import subprocess, sys, time; "
            "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(60)']); "
            "time.sleep(60)"
        )
        parent = subprocess.Popen([sys.executable, "-c", code])
        proc = psutil.Process(parent.pid)
        # Wait for the grandchild to appear
        for _ in range(50):
            if proc.children(recursive=True):
                break
            time.sleep(0.1)
        children = proc.children(recursive=True)

        terminate_process_tree(parent.pid, timeout=5)
        parent.wait(timeout=5)

        assert parent.returncode is not None
        psutil.wait_procs(children, timeout=5)
        assert all(_finished(child) for child in children)

    def test_interrupted_stage_leaves_no_descendants(self, tmp_path, monkeypatch):
        pid_file = tmp_path / "grandchild.pid"
        code = (
            "import pathlib, subprocess, sys, time; "
            "p = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(60)']); "
            f"pathlib.Path({str(pid_file)!r}).write_text(str(p.pid)); "
            "time.sleep(60)"
        )
        stage = make_stage(tmp_path, code)
        tree: list[psutil.Process] = []
        real_wait = subprocess.Popen.wait

        def interrupted_wait(process, timeout=None):
            # First wait is the runner blocking on the stage: interrupt it
            # once the grandchild exists, as Ctrl-C would
            if tree:
                return real_wait(process, timeout)
            for _ in range(100):
                if pid_file.exists() and pid_file.read_text():
                    break
                time.sleep(0.1)
            child = psutil.Process(process.pid)
            tree.append(child)
            tree.extend(child.children(recursive=True))
            raise KeyboardInterrupt

        monkeypatch.setattr(subprocess.Popen, "wait", interrupted_wait)

        with pytest.raises(KeyboardInterrupt):
            StageRunner().run(stage)

        assert len(tree) == 2
        assert tree[1].pid == int(pid_file.read_text())
        psutil.wait_procs(tree, timeout=5)
        assert all(_finished(proc) for proc in tree)

# Copyright 2026 Stdump Importer Authors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Tests for invoking stdump as a child process."""

import subprocess

import pytest

from stdump_importer import stdump_runner
from stdump_importer.exceptions import InputAcquisitionError
from stdump_importer.importer_state import Diagnostics


@pytest.fixture
def fake_stdump(tmp_path):
    path = tmp_path / "stdump"
    path.write_text("#!/bin/sh\n")
    path.chmod(0o755)
    return str(path)


def _patch_run(monkeypatch, returncode=0, stdout=b"", stderr=b"",
               error=None):
    calls = []

    def fake_run(command, **kwargs):
        calls.append((command, kwargs))
        if error is not None:
            raise error
        return subprocess.CompletedProcess(command, returncode, stdout,
                                           stderr)

    monkeypatch.setattr(stdump_runner.subprocess, "run", fake_run)
    return calls


def test_resolve_explicit_path(fake_stdump):
    assert stdump_runner.resolve_stdump_executable(fake_stdump) == fake_stdump


def test_resolve_from_environment(monkeypatch, fake_stdump):
    monkeypatch.setenv("STDUMP_IMPORT_STDUMP_PATH", fake_stdump)
    assert stdump_runner.resolve_stdump_executable() == fake_stdump


def test_resolve_missing_explicit_path(tmp_path):
    with pytest.raises(InputAcquisitionError):
        stdump_runner.resolve_stdump_executable(str(tmp_path / "nope"))


def test_resolve_from_path(monkeypatch):
    monkeypatch.delenv("STDUMP_IMPORT_STDUMP_PATH", raising=False)
    monkeypatch.setattr(stdump_runner.shutil, "which",
                        lambda name: "/opt/bin/" + name)
    assert stdump_runner.resolve_stdump_executable() == "/opt/bin/stdump"


def test_resolve_not_on_path(monkeypatch):
    monkeypatch.delenv("STDUMP_IMPORT_STDUMP_PATH", raising=False)
    monkeypatch.setattr(stdump_runner.shutil, "which", lambda name: None)
    with pytest.raises(InputAcquisitionError, match="not found on PATH"):
        stdump_runner.resolve_stdump_executable()


def test_run_stdump_returns_stdout(monkeypatch, fake_stdump):
    calls = _patch_run(monkeypatch, stdout=b'{"files": []}')
    diagnostics = Diagnostics()

    output = stdump_runner.run_stdump("/tmp/game.elf",
                                      diagnostics,
                                      executable=fake_stdump)

    assert output == b'{"files": []}'
    command, kwargs = calls[0]
    assert command == [fake_stdump, "print_json", "/tmp/game.elf"]
    assert kwargs["capture_output"] is True
    assert kwargs["timeout"] is None
    assert len(diagnostics) == 0


def test_run_stdump_passes_timeout(monkeypatch, fake_stdump):
    calls = _patch_run(monkeypatch, stdout=b"{}")

    stdump_runner.run_stdump("/tmp/game.elf",
                             Diagnostics(),
                             executable=fake_stdump,
                             timeout_seconds=30)

    assert calls[0][1]["timeout"] == 30


def test_run_stdump_error_lines_fail_the_run(monkeypatch, fake_stdump):
    _patch_run(monkeypatch,
               stdout=b"{}",
               stderr=b"warning: bad stab\n\n  \nerror: truncated\n")
    diagnostics = Diagnostics()

    with pytest.raises(InputAcquisitionError, match="2 error line"):
        stdump_runner.run_stdump("/tmp/game.elf",
                                 diagnostics,
                                 executable=fake_stdump)

    assert [(d.source, d.message) for d in diagnostics.entries] == [
        ("stdump", "warning: bad stab"),
        ("stdump", "error: truncated"),
    ]


def test_run_stdump_nonzero_exit(monkeypatch, fake_stdump):
    _patch_run(monkeypatch, returncode=3, stdout=b"{}")

    with pytest.raises(InputAcquisitionError, match="rc=3"):
        stdump_runner.run_stdump("/tmp/game.elf",
                                 Diagnostics(),
                                 executable=fake_stdump)


def test_run_stdump_empty_output(monkeypatch, fake_stdump):
    _patch_run(monkeypatch)

    with pytest.raises(InputAcquisitionError, match="no output"):
        stdump_runner.run_stdump("/tmp/game.elf",
                                 Diagnostics(),
                                 executable=fake_stdump)


def test_run_stdump_timeout(monkeypatch, fake_stdump):
    _patch_run(monkeypatch,
               error=subprocess.TimeoutExpired("stdump", timeout=5))

    with pytest.raises(InputAcquisitionError, match="timed out"):
        stdump_runner.run_stdump("/tmp/game.elf",
                                 Diagnostics(),
                                 executable=fake_stdump,
                                 timeout_seconds=5)


def test_run_stdump_cannot_start(monkeypatch, fake_stdump):
    _patch_run(monkeypatch, error=PermissionError("denied"))

    with pytest.raises(InputAcquisitionError, match="failed to run stdump"):
        stdump_runner.run_stdump("/tmp/game.elf",
                                 Diagnostics(),
                                 executable=fake_stdump)

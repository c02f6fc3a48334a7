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
"""Runs stdump to turn an ELF file into a JSON debug-info document."""

import logging
import os
import shutil
import subprocess

from stdump_importer import constants
from stdump_importer.exceptions import InputAcquisitionError
from stdump_importer.importer_state import Diagnostics

logger = logging.getLogger(name=__name__)


def resolve_stdump_executable(executable: str = "") -> str:
    """Finds the stdump binary.

    An explicit path wins, then the STDUMP_IMPORT_STDUMP_PATH environment
    variable, then whatever is on PATH.
    """
    candidate = (executable
                 or os.environ.get(constants.ENV_PREFIX + "STDUMP_PATH", "")
                 or constants.STDUMP_EXECUTABLE).strip()
    if os.path.sep in candidate:
        if os.path.isfile(candidate):
            return candidate
        raise InputAcquisitionError("stdump executable not found: %s" %
                                    candidate)
    resolved = shutil.which(candidate)
    if resolved is None:
        raise InputAcquisitionError("stdump executable not found on PATH: %s" %
                                    candidate)
    return resolved


def run_stdump(elf_path: str,
               diagnostics: Diagnostics,
               executable: str = "",
               timeout_seconds: int = 0) -> bytes:
    """Runs ``stdump print_json`` and returns its standard output.

    Both output streams are drained together. The run is a failure if the
    process cannot start, times out, exits non-zero or writes anything to
    its error stream; every error line is forwarded to diagnostics.
    """
    command = [
        resolve_stdump_executable(executable),
        constants.STDUMP_PRINT_JSON_COMMAND,
        elf_path,
    ]
    timeout = timeout_seconds if timeout_seconds > 0 else None
    logger.info("Running %s", " ".join(command))
    try:
        completed = subprocess.run(command,
                                   capture_output=True,
                                   check=False,
                                   timeout=timeout)
    except subprocess.TimeoutExpired as err:
        raise InputAcquisitionError("stdump timed out after %ss" %
                                    timeout_seconds) from err
    except (OSError, subprocess.SubprocessError) as err:
        raise InputAcquisitionError("failed to run stdump: %s" % err) from err

    error_lines = [
        line for line in (completed.stderr or b"").decode(
            "utf-8", errors="replace").splitlines() if line.strip()
    ]
    for line in error_lines:
        diagnostics.append_msg(line, constants.STDUMP_DIAGNOSTIC_SOURCE)

    if completed.returncode != 0:
        raise InputAcquisitionError("stdump failed (rc=%d)" %
                                    completed.returncode)
    if error_lines:
        raise InputAcquisitionError("stdump reported %d error line(s)" %
                                    len(error_lines))
    if not completed.stdout:
        raise InputAcquisitionError("stdump produced no output")
    logger.info("stdump produced %d bytes", len(completed.stdout))
    return completed.stdout

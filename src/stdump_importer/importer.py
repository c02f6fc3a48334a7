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
"""Drives a complete import run.

The run moves through a fixed sequence of states. Only the first two
stages can abort it: once type import has started every later problem is
recorded as a diagnostic and the run still ends in DONE.
"""

import enum
import logging
import os
import tempfile

from stdump_importer import ast_loader
from stdump_importer import constants
from stdump_importer import stdump_runner
from stdump_importer import symbol_materializer
from stdump_importer import type_graph
from stdump_importer.datatypes import ast
from stdump_importer.exceptions import ImporterError, InputAcquisitionError
from stdump_importer.importer_state import (
    Diagnostics,
    ImporterState,
    ImportOptions,
    TaskMonitor,
)
from stdump_importer.program_db import ProgramDatabase

logger = logging.getLogger(name=__name__)


class ImportState(enum.Enum):
    IDLE = "idle"
    PREPARING_INPUT = "preparing_input"
    PARSING = "parsing"
    IMPORTING_TYPES = "importing_types"
    IMPORTING_FUNCTIONS = "importing_functions"
    IMPORTING_GLOBALS = "importing_globals"
    DONE = "done"
    ABORTED = "aborted"


_ALLOWED_TRANSITIONS = {
    ImportState.IDLE: {ImportState.PREPARING_INPUT},
    ImportState.PREPARING_INPUT: {ImportState.PARSING, ImportState.ABORTED},
    ImportState.PARSING: {ImportState.IMPORTING_TYPES, ImportState.ABORTED},
    ImportState.IMPORTING_TYPES: {ImportState.IMPORTING_FUNCTIONS},
    ImportState.IMPORTING_FUNCTIONS: {ImportState.IMPORTING_GLOBALS},
    ImportState.IMPORTING_GLOBALS: {ImportState.DONE},
    ImportState.DONE: set(),
    ImportState.ABORTED: set(),
}


class StdumpImporter:
    """Imports the debug information of one program."""

    def __init__(self,
                 program: ProgramDatabase,
                 options: ImportOptions | None = None,
                 monitor: TaskMonitor | None = None,
                 diagnostics: Diagnostics | None = None) -> None:
        self.program = program
        self.options = options or ImportOptions()
        self.monitor = monitor or TaskMonitor()
        self.diagnostics = diagnostics or Diagnostics()
        self.state = ImportState.IDLE
        self.importer_state: ImporterState | None = None
        self.stats = symbol_materializer.MaterializationStats()
        self._temp_files: list[str] = []

    def _transition(self, new_state: ImportState) -> None:
        if new_state not in _ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError("invalid import state transition %s -> %s" %
                               (self.state.value, new_state.value))
        logger.debug("Import state %s -> %s", self.state.value,
                     new_state.value)
        self.state = new_state

    def do_import(self) -> bool:
        """Runs every stage. Returns False only if the input could not be
        obtained or parsed."""
        self._transition(ImportState.PREPARING_INPUT)
        try:
            document = self._acquire_document()
            self._transition(ImportState.PARSING)
            parsed = ast_loader.read_json(document)
        except InputAcquisitionError as err:
            self.diagnostics.append_exception(err)
            self._transition(ImportState.ABORTED)
            return False
        finally:
            self._cleanup_temp_files()

        self.import_ast(parsed)
        return True

    def import_ast(self, parsed: ast.ParsedJsonFile) -> ImporterState:
        """Imports an already parsed document into the program."""
        if self.state is ImportState.IDLE:
            self._transition(ImportState.PREPARING_INPUT)
            self._transition(ImportState.PARSING)
        importer = ImporterState.create(parsed, self.program, self.options,
                                        self.diagnostics, self.monitor)
        self.importer_state = importer
        type_graph.prepare_type_lookup(importer)

        self._transition(ImportState.IMPORTING_TYPES)
        if self.options.import_data_types:
            self._run_stage(type_graph.import_data_types, importer)

        self._transition(ImportState.IMPORTING_FUNCTIONS)
        if self.options.import_functions:
            self._run_stage(symbol_materializer.import_functions, importer,
                            self.stats)

        self._transition(ImportState.IMPORTING_GLOBALS)
        if self.options.import_globals:
            self._run_stage(symbol_materializer.import_global_variables,
                            importer, self.stats)

        self._transition(ImportState.DONE)
        logger.info("Import finished with %d diagnostics",
                    len(self.diagnostics))
        return importer

    def _run_stage(self, stage, *args) -> None:
        try:
            stage(*args)
        except ImporterError as err:
            self.diagnostics.append_exception(err)

    def _acquire_document(self) -> bytes:
        options = self.options
        if options.override_json_path:
            logger.info("Reading debug information from %s",
                        options.override_json_path)
            try:
                with open(options.override_json_path, "rb") as f:
                    return f.read()
            except OSError as err:
                raise InputAcquisitionError(
                    "cannot read %s: %s" %
                    (options.override_json_path, err)) from err

        if options.override_elf_path:
            elf_path = options.override_elf_path
            if not os.path.isfile(elf_path):
                raise InputAcquisitionError("ELF file not found: %s" %
                                            elf_path)
        else:
            if not self.program.can_export():
                raise InputAcquisitionError(
                    "the program cannot be exported as an ELF file")
            elf_path = self._create_temp_file(constants.TEMP_ELF_PREFIX,
                                              constants.TEMP_ELF_SUFFIX)
            self.program.export_executable(elf_path)

        return stdump_runner.run_stdump(elf_path, self.diagnostics,
                                        options.stdump_path,
                                        options.stdump_timeout_seconds)

    def _create_temp_file(self, prefix: str, suffix: str) -> str:
        try:
            fd, path = tempfile.mkstemp(prefix=prefix, suffix=suffix)
        except OSError as err:
            raise InputAcquisitionError("cannot create temporary file: %s" %
                                        err) from err
        os.close(fd)
        self._temp_files.append(path)
        return path

    def _cleanup_temp_files(self) -> None:
        while self._temp_files:
            path = self._temp_files.pop()
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as err:
                logger.warning("Failed to remove temporary file %s: %s", path,
                               err)


def run_import(
        program: ProgramDatabase,
        options: ImportOptions | None = None,
        monitor: TaskMonitor | None = None,
        diagnostics: Diagnostics | None = None
) -> tuple[ImporterState | None, bool]:
    """Imports debug information into program.

    Returns the run state (None if the input never parsed) and whether the
    run succeeded. Never raises.
    """
    importer = StdumpImporter(program, options, monitor, diagnostics)
    try:
        success = importer.do_import()
    except Exception as err:  # pragma: no cover
        logger.exception("Unexpected failure during import")
        importer.diagnostics.append_exception(err)
        return importer.importer_state, False
    return importer.importer_state, success

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
"""Run-wide state shared by every stage of an import."""

from dataclasses import dataclass, field
import logging
import threading

from stdump_importer.datatypes.ast import ParsedJsonFile
from stdump_importer.datatypes.data_types import DataType
from stdump_importer.program_db import ProgramDatabase

logger = logging.getLogger(name=__name__)


@dataclass
class ImportOptions:
    import_data_types: bool = True
    import_functions: bool = True
    import_globals: bool = True
    mark_inlined_code: bool = True
    output_line_numbers: bool = True
    override_elf_path: str = ""
    override_json_path: str = ""
    stdump_path: str = ""
    stdump_timeout_seconds: int = 0


@dataclass(frozen=True)
class Diagnostic:
    source: str
    message: str


class Diagnostics:
    """Collects per-item failures so a run can continue past them."""

    def __init__(self) -> None:
        self._entries: list[Diagnostic] = []

    def append_msg(self, message: str, source: str = "stdump_importer") -> None:
        logger.warning("%s: %s", source, message)
        self._entries.append(Diagnostic(source, message))

    def append_exception(self, err: BaseException,
                         source: str = "stdump_importer") -> None:
        self.append_msg("%s: %s" % (type(err).__name__, err), source)

    @property
    def entries(self) -> list[Diagnostic]:
        return list(self._entries)

    def messages(self) -> list[str]:
        return [entry.message for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    # An empty sink is still a sink.
    def __bool__(self) -> bool:
        return True


class TaskMonitor:
    """Cooperative cancellation flag checked between items."""

    def __init__(self) -> None:
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()


@dataclass
class ImporterState:
    """Mutable context for one import run.

    ``types`` is indexed like ``ast.deduplicated_types``; an entry stays
    None until the type at that index has been materialized.
    """

    ast: ParsedJsonFile
    program: ProgramDatabase
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    monitor: TaskMonitor = field(default_factory=TaskMonitor)
    mark_inlined_code: bool = True
    output_line_numbers: bool = True
    types: list[DataType | None] = field(default_factory=list)
    stabs_type_number_to_deduplicated_type_index: list[dict[tuple[int, int],
                                                            int]] = field(
                                                                default_factory=list)
    type_name_to_deduplicated_type_index: dict[str, int] = field(
        default_factory=dict)
    lookup_prepared: bool = False
    # Indices whose on-demand materialization is in progress.
    resolving: set[int] = field(default_factory=set)
    derived_type_cache: dict[tuple, DataType] = field(default_factory=dict)

    @classmethod
    def create(cls,
               parsed: ParsedJsonFile,
               program: ProgramDatabase,
               options: ImportOptions | None = None,
               diagnostics: Diagnostics | None = None,
               monitor: TaskMonitor | None = None) -> "ImporterState":
        options = options or ImportOptions()
        return cls(ast=parsed,
                   program=program,
                   diagnostics=diagnostics or Diagnostics(),
                   monitor=monitor or TaskMonitor(),
                   mark_inlined_code=options.mark_inlined_code,
                   output_line_numbers=options.output_line_numbers)

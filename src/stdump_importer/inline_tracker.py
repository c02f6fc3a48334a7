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
"""Marks code that was inlined from other source files."""

from dataclasses import dataclass
import logging
from typing import Iterable

from stdump_importer import constants
from stdump_importer.datatypes import ast
from stdump_importer.program_db import CommentType, ProgramDatabase

logger = logging.getLogger(name=__name__)


@dataclass(frozen=True)
class InlineBoundary:
    address: int
    comment: str


def primary_path(function: ast.FunctionDefinition,
                 source_file: ast.SourceFile) -> str:
    if function.relative_path is not None:
        return function.relative_path
    return source_file.relative_path


def find_inline_boundaries(
        path: str,
        sub_source_files: Iterable[ast.SubSourceFile]) -> list[InlineBoundary]:
    """Single pass over the breadcrumbs of one function.

    A boundary is produced whenever the active file switches away from or
    back to path. Nested inlining is not tracked separately.
    """
    boundaries = []
    was_inlining = False
    for sub in sub_source_files:
        is_inlining = sub.relative_path != path
        if is_inlining and not was_inlining:
            boundaries.append(
                InlineBoundary(
                    sub.address,
                    constants.INLINED_FROM_COMMENT_FORMAT % sub.relative_path))
        elif not is_inlining and was_inlining:
            boundaries.append(
                InlineBoundary(sub.address,
                               constants.END_OF_INLINED_SECTION_COMMENT))
        was_inlining = is_inlining
    return boundaries


def mark_inlined_code(program: ProgramDatabase,
                      function: ast.FunctionDefinition,
                      source_file: ast.SourceFile) -> list[InlineBoundary]:
    boundaries = find_inline_boundaries(primary_path(function, source_file),
                                        function.sub_source_files)
    for boundary in boundaries:
        program.set_comment(boundary.address, CommentType.PRE,
                            boundary.comment)
    if boundaries:
        logger.debug("Marked %d inline boundaries in %s", len(boundaries),
                     function.name)
    return boundaries

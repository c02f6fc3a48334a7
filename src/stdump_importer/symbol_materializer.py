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
"""Creates functions, local variables and globals from the AST.

Failures are handled per item: whatever the program database rejects is
recorded in the run's diagnostics and the loop moves on to the next item.
"""

from dataclasses import dataclass
import logging

from stdump_importer import constants
from stdump_importer import inline_tracker
from stdump_importer import type_graph
from stdump_importer.datatypes import ast
from stdump_importer.exceptions import (
    InvalidInputError,
    SymbolMutationError,
    TypeResolutionError,
)
from stdump_importer.importer_state import ImporterState
from stdump_importer.program_db import (
    CommentType,
    Function,
    LocalVariable,
    Parameter,
    SourceType,
)

logger = logging.getLogger(name=__name__)

FUNCTIONS_SOURCE = "functions"
GLOBALS_SOURCE = "globals"


@dataclass
class MaterializationStats:
    functions: int = 0
    parameters: int = 0
    locals: int = 0
    line_comments: int = 0
    inline_boundaries: int = 0
    globals: int = 0
    skipped_functions: int = 0


def import_functions(importer: ImporterState,
                     stats: MaterializationStats | None = None
                     ) -> MaterializationStats:
    """Creates or updates a function for every definition with an address
    range."""
    stats = stats or MaterializationStats()
    type_graph.prepare_type_lookup(importer)
    for source_file in importer.ast.files:
        for definition in source_file.functions:
            if importer.monitor.is_cancelled():
                logger.info("Function import cancelled")
                return stats
            if not definition.address_range.valid():
                logger.debug("Skipping %s, it has no address range",
                             definition.name)
                stats.skipped_functions += 1
                continue
            function = import_function(importer, definition, source_file,
                                       stats)
            if function is None:
                stats.skipped_functions += 1
            else:
                stats.functions += 1
    logger.info("Imported %d functions (%d skipped)", stats.functions,
                stats.skipped_functions)
    return stats


def import_function(importer: ImporterState,
                    definition: ast.FunctionDefinition,
                    source_file: ast.SourceFile,
                    stats: MaterializationStats) -> Function | None:
    low = definition.address_range.low
    high = definition.address_range.high - 1  # type: ignore[operator]
    function = find_or_create_function(importer, definition, low, high)
    if function is None:
        return None

    set_function_name(importer, function, definition, source_file, low)

    function_type = definition.type
    if function_type.return_type is not None:
        try:
            function.set_return_type(
                type_graph.create_type(function_type.return_type, importer),
                SourceType.ANALYSIS)
        except (InvalidInputError, TypeResolutionError) as err:
            importer.diagnostics.append_exception(err, FUNCTIONS_SOURCE)

    parameter_names = fill_in_parameters(importer, function, definition,
                                         stats)

    if importer.output_line_numbers:
        for pair in definition.line_numbers:
            importer.program.set_comment(
                pair.address, CommentType.EOL,
                constants.LINE_NUMBER_COMMENT_FORMAT % pair.line_number)
            stats.line_comments += 1

    if importer.mark_inlined_code:
        boundaries = inline_tracker.mark_inlined_code(importer.program,
                                                      definition, source_file)
        stats.inline_boundaries += len(boundaries)

    fill_in_local_variables(importer, function, definition, parameter_names,
                            stats)
    return function


def find_or_create_function(importer: ImporterState,
                            definition: ast.FunctionDefinition, low: int,
                            high: int) -> Function | None:
    program = importer.program
    function = program.get_function_at(low)
    if function is not None:
        return function
    try:
        if high < low:
            # Degenerate range, only the entry point is known.
            program.create_function(None, low, None, SourceType.ANALYSIS)
        else:
            program.create_function(definition.name, low, (low, high),
                                    SourceType.ANALYSIS)
    except SymbolMutationError as err:
        importer.diagnostics.append_msg(
            "Failed to create function %s: %s" % (definition.name, err),
            FUNCTIONS_SOURCE)
    return program.get_function_at(low)


def set_function_name(importer: ImporterState, function: Function,
                      definition: ast.FunctionDefinition,
                      source_file: ast.SourceFile, low: int) -> None:
    program = importer.program
    # Drop compiler markers and the stale label for this name so the name
    # can be applied to the function itself.
    for symbol in program.get_symbols(low):
        if (symbol.name in constants.COMPILER_NOISE_LABELS
                or symbol.name == definition.name):
            program.remove_symbol(symbol)

    # Auto-naming may have picked up one of the markers removed above, so
    # the name is always set explicitly.
    try:
        function.set_name(definition.name, SourceType.ANALYSIS)
    except SymbolMutationError as err:
        importer.diagnostics.append_exception(err, FUNCTIONS_SOURCE)
    function.set_comment(source_file.path)


def fill_in_parameters(importer: ImporterState, function: Function,
                       definition: ast.FunctionDefinition,
                       stats: MaterializationStats) -> set[str]:
    """Replaces the parameter list of function.

    Returns the names of all declared parameters, even if the replacement
    was rejected, so locals with those names are still skipped.
    """
    parameter_names: set[str] = set()
    variables = definition.type.parameters or []
    if not variables:
        return parameter_names

    parameters = []
    for variable in variables:
        parameter_type = type_graph.create_variable_type(
            variable.type, importer)
        if variable.storage.is_by_reference:
            parameter_type = type_graph.pointer_to(parameter_type, importer)
        parameters.append(Parameter(variable.name or "", parameter_type))
        if variable.name:
            parameter_names.add(variable.name)

    try:
        function.replace_parameters(parameters, SourceType.ANALYSIS)
        stats.parameters += len(parameters)
    except SymbolMutationError as err:
        importer.diagnostics.append_msg(
            "Failed to setup parameters for %s: %s" % (definition.name, err),
            FUNCTIONS_SOURCE)
    return parameter_names


def fill_in_local_variables(importer: ImporterState, function: Function,
                            definition: ast.FunctionDefinition,
                            parameter_names: set[str],
                            stats: MaterializationStats) -> None:
    stack_locals: dict[str, ast.Variable] = {}
    for child in definition.locals:
        if not isinstance(child, ast.Variable) or not child.name:
            continue
        if child.name in parameter_names:
            continue
        if (child.storage_class is not ast.StorageClass.STATIC
                and child.storage.type is ast.VariableStorageType.STACK):
            stack_locals[child.name] = child

    for name, variable in stack_locals.items():
        local_type = type_graph.create_variable_type(variable.type, importer)
        try:
            function.add_local_variable(
                LocalVariable(name, local_type,
                              variable.storage.stack_pointer_offset),
                SourceType.ANALYSIS)
            stats.locals += 1
        except SymbolMutationError as err:
            importer.diagnostics.append_exception(err, FUNCTIONS_SOURCE)


def import_global_variables(importer: ImporterState,
                            stats: MaterializationStats | None = None
                            ) -> MaterializationStats:
    """Places data and a label for every global with a known address."""
    stats = stats or MaterializationStats()
    type_graph.prepare_type_lookup(importer)
    program = importer.program
    for source_file in importer.ast.files:
        for variable in source_file.globals:
            if importer.monitor.is_cancelled():
                logger.info("Global variable import cancelled")
                return stats
            address = variable.storage.global_address
            if address < 0:
                continue
            data_type = type_graph.create_variable_type(variable.type,
                                                        importer)
            try:
                program.create_data(address, data_type, data_type.length,
                                    clear_conflicts=True)
            except SymbolMutationError as err:
                importer.diagnostics.append_exception(err, GLOBALS_SOURCE)
            try:
                program.create_label(address, variable.name or "",
                                     make_primary=True)
            except SymbolMutationError as err:
                importer.diagnostics.append_exception(err, GLOBALS_SOURCE)
            stats.globals += 1
    logger.info("Imported %d global variables", stats.globals)
    return stats

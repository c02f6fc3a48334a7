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
"""Program database boundary.

The importer only talks to the program database through the methods of
``ProgramDatabase``. ``InMemoryProgram`` is a complete implementation
that keeps everything in dictionaries keyed by address, which is what the
command line tool and the tests run against.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import enum
import logging
import os
from typing import Any, Iterable

from stdump_importer import constants
from stdump_importer.datatypes.data_types import (
    CompositeDataType,
    DataType,
)
from stdump_importer.exceptions import (
    CodeUnitInsertionError,
    DuplicateNameError,
    InputAcquisitionError,
    InvalidInputError,
)

logger = logging.getLogger(name=__name__)


class SourceType(enum.Enum):
    DEFAULT = "default"
    ANALYSIS = "analysis"
    IMPORTED = "imported"
    USER_DEFINED = "user_defined"


class CommentType(enum.Enum):
    EOL = "eol"
    PRE = "pre"
    PLATE = "plate"


class SymbolType(enum.Enum):
    LABEL = "label"
    FUNCTION = "function"


@dataclass
class Symbol:
    name: str
    address: int
    symbol_type: SymbolType = SymbolType.LABEL
    source: SourceType = SourceType.ANALYSIS
    primary: bool = False


@dataclass
class CallingConvention:
    """Argument passing rules used for dynamic parameter storage."""

    name: str
    argument_registers: tuple[str, ...]
    stack_parameter_offset: int = 0
    stack_alignment: int = 4

    def assign_storage(self, lengths: Iterable[int]) -> list[str]:
        storage = []
        register_index = 0
        stack_offset = self.stack_parameter_offset
        for length in lengths:
            if (register_index < len(self.argument_registers)
                    and length <= self.stack_alignment * 2):
                storage.append(self.argument_registers[register_index])
                register_index += 1
                continue
            storage.append("Stack[0x%x]" % stack_offset)
            aligned = max(length, 1) + self.stack_alignment - 1
            stack_offset += aligned - aligned % self.stack_alignment
        return storage


# The R5900 "EABI" used by PlayStation 2 toolchains.
DEFAULT_CALLING_CONVENTION = CallingConvention(
    name="__stdcall",
    argument_registers=("a0", "a1", "a2", "a3", "t0", "t1", "t2", "t3"),
)


@dataclass
class Parameter:
    name: str
    data_type: DataType
    ordinal: int = 0
    storage: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.data_type.display_name(),
                "storage": self.storage}


@dataclass
class LocalVariable:
    name: str
    data_type: DataType
    stack_offset: int
    source: SourceType = SourceType.ANALYSIS

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.data_type.display_name(),
                "stack_offset": self.stack_offset}


@dataclass
class DataItem:
    address: int
    data_type: DataType
    length: int

    @property
    def end(self) -> int:
        return self.address + self.length


class Function:
    """A function record bound to an entry point and an address body."""

    def __init__(self, program: "InMemoryProgram", name: str, entry: int,
                 body: tuple[int, int]) -> None:
        self._program = program
        self.name = name
        self.entry = entry
        self.body = body
        self.comment: str | None = None
        self.return_type: DataType | None = None
        self.parameters: list[Parameter] = []
        self.locals: list[LocalVariable] = []

    def contains(self, address: int) -> bool:
        return self.body[0] <= address <= self.body[1]

    def set_name(self, name: str, source: SourceType) -> None:
        self._program.rename_function(self, name, source)

    def set_comment(self, comment: str | None) -> None:
        self.comment = comment

    def set_return_type(self, data_type: DataType,
                        source: SourceType) -> None:
        del source
        if data_type is None:
            raise InvalidInputError("return type of %s is missing" %
                                    self.name)
        self.return_type = data_type

    def replace_parameters(self, parameters: list[Parameter],
                           source: SourceType) -> None:
        """Replaces the whole parameter list.

        Storage is assigned from the program's calling convention rather
        than taken from the caller.
        """
        del source
        seen = set()
        for parameter in parameters:
            if not parameter.name or not parameter.name.strip():
                raise InvalidInputError("parameter of %s has no name" %
                                        self.name)
            if parameter.name in seen:
                raise DuplicateNameError(
                    "parameter %s of %s defined twice" %
                    (parameter.name, self.name))
            seen.add(parameter.name)
        storage = self._program.calling_convention.assign_storage(
            p.data_type.length for p in parameters)
        replaced = []
        for ordinal, (parameter, slot) in enumerate(zip(parameters,
                                                        storage)):
            replaced.append(
                Parameter(parameter.name, parameter.data_type, ordinal, slot))
        self.parameters = replaced
        # Locals named like a parameter would shadow it.
        self.locals = [v for v in self.locals if v.name not in seen]

    def add_local_variable(self, variable: LocalVariable,
                           source: SourceType) -> LocalVariable:
        del source
        if not variable.name or not variable.name.strip():
            raise InvalidInputError("local variable of %s has no name" %
                                    self.name)
        if any(p.name == variable.name for p in self.parameters):
            raise DuplicateNameError(
                "local %s of %s collides with a parameter" %
                (variable.name, self.name))
        for existing in self.locals:
            if (existing.name == variable.name
                    and existing.stack_offset != variable.stack_offset):
                raise DuplicateNameError(
                    "local %s of %s already exists at stack offset %d" %
                    (variable.name, self.name, existing.stack_offset))
        self.locals = [
            v for v in self.locals if v.name != variable.name
            and v.stack_offset != variable.stack_offset
        ]
        self.locals.append(variable)
        self.locals.sort(key=lambda v: v.stack_offset)
        return variable

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "entry": self.entry,
            "body": list(self.body),
            "comment": self.comment,
            "return_type": (self.return_type.display_name()
                            if self.return_type is not None else None),
            "parameters": [p.to_dict() for p in self.parameters],
            "locals": [v.to_dict() for v in self.locals],
        }


class ProgramDatabase(ABC):
    """Interface the importer mutates.

    Addresses are plain integers in the default address space.
    """

    pointer_size: int = constants.DEFAULT_POINTER_SIZE

    @abstractmethod
    def add_data_type(self, data_type: DataType) -> DataType:
        raise NotImplementedError

    @abstractmethod
    def get_function_at(self, address: int) -> Function | None:
        raise NotImplementedError

    @abstractmethod
    def create_function(self, name: str | None, entry: int,
                        body: tuple[int, int] | None,
                        source: SourceType) -> Function:
        raise NotImplementedError

    @abstractmethod
    def get_symbols(self, address: int) -> list[Symbol]:
        raise NotImplementedError

    @abstractmethod
    def remove_symbol(self, symbol: Symbol) -> None:
        raise NotImplementedError

    @abstractmethod
    def create_label(self, address: int, name: str,
                     make_primary: bool = True) -> Symbol:
        raise NotImplementedError

    @abstractmethod
    def set_comment(self, address: int, comment_type: CommentType,
                    text: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def create_data(self, address: int, data_type: DataType, length: int,
                    clear_conflicts: bool = True) -> DataItem:
        raise NotImplementedError

    @abstractmethod
    def can_export(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def export_executable(self, path: str) -> None:
        raise NotImplementedError


def default_function_name(entry: int) -> str:
    return "FUN_%08x" % entry


class InMemoryProgram(ProgramDatabase):
    """Dictionary backed program database."""

    def __init__(self,
                 executable_path: str | None = None,
                 pointer_size: int = constants.DEFAULT_POINTER_SIZE,
                 calling_convention: CallingConvention | None = None,
                 memory_blocks: list[tuple[int, int]] | None = None) -> None:
        self.executable_path = executable_path
        self.pointer_size = pointer_size
        self.calling_convention = (calling_convention
                                   or DEFAULT_CALLING_CONVENTION)
        # Inclusive (start, end) ranges. Empty means everything is mapped.
        self.memory_blocks = list(memory_blocks or [])
        self.data_types: dict[str, DataType] = {}
        self.functions: dict[int, Function] = {}
        self.symbols: dict[int, list[Symbol]] = {}
        self.comments: dict[tuple[int, CommentType], str] = {}
        self.data: dict[int, DataItem] = {}

    # Types

    def add_data_type(self, data_type: DataType) -> DataType:
        """Registers a named type.

        An equivalent type already registered under the name is returned
        instead. A different type owning the name makes the new one get a
        ".conflict" name.
        """
        existing = self.data_types.get(data_type.name)
        if existing is None or existing is data_type:
            self.data_types[data_type.name] = data_type
            return data_type
        if _can_reuse(existing, data_type):
            logger.debug("Reusing existing type %s", existing.name)
            return existing
        base_name = data_type.name
        candidate = base_name + ".conflict"
        suffix = 1
        while candidate in self.data_types:
            existing = self.data_types[candidate]
            if _can_reuse(existing, data_type):
                logger.debug("Reusing existing type %s", candidate)
                return existing
            candidate = "%s.conflict%d" % (base_name, suffix)
            suffix += 1
        logger.debug("Renaming conflicting type %s to %s", base_name,
                     candidate)
        data_type.name = candidate
        self.data_types[candidate] = data_type
        return data_type

    def get_data_type(self, name: str) -> DataType | None:
        return self.data_types.get(name)

    # Functions

    def get_function_at(self, address: int) -> Function | None:
        return self.functions.get(address)

    def get_function_containing(self, address: int) -> Function | None:
        for function in self.functions.values():
            if function.contains(address):
                return function
        return None

    def create_function(self, name: str | None, entry: int,
                        body: tuple[int, int] | None,
                        source: SourceType) -> Function:
        if body is None:
            body = (entry, entry)
        low, high = body
        if high < low or not low <= entry <= high:
            raise InvalidInputError("invalid body [0x%x, 0x%x] for 0x%x" %
                                    (low, high, entry))
        if entry in self.functions:
            raise CodeUnitInsertionError("function already exists at 0x%x" %
                                         entry)
        for other in self.functions.values():
            if other.body[0] <= high and low <= other.body[1]:
                raise CodeUnitInsertionError(
                    "body of %s overlaps function %s" %
                    (name or default_function_name(entry), other.name))
        function = Function(self, default_function_name(entry), entry,
                            (low, high))
        self.functions[entry] = function
        self._add_symbol(
            Symbol(function.name, entry, SymbolType.FUNCTION,
                   SourceType.DEFAULT, True))
        if name:
            self.rename_function(function, name, source)
        return function

    def rename_function(self, function: Function, name: str,
                        source: SourceType) -> None:
        """Renames function. A label with the same name at the entry point
        is absorbed into the function symbol."""
        _check_symbol_name(name)
        for symbol in self.get_symbols(function.entry):
            if (symbol.symbol_type is SymbolType.LABEL
                    and symbol.name == name):
                self.remove_symbol(symbol)
        symbol = self._function_symbol(function)
        if symbol is None:
            symbol = Symbol(name, function.entry, SymbolType.FUNCTION,
                            source, True)
            self._add_symbol(symbol)
        symbol.name = name
        symbol.source = source
        function.name = name

    def _function_symbol(self, function: Function) -> Symbol | None:
        for symbol in self.symbols.get(function.entry, []):
            if symbol.symbol_type is SymbolType.FUNCTION:
                return symbol
        return None

    # Symbols

    def get_symbols(self, address: int) -> list[Symbol]:
        return list(self.symbols.get(address, []))

    def _add_symbol(self, symbol: Symbol) -> None:
        at_address = self.symbols.setdefault(symbol.address, [])
        if symbol.primary:
            for other in at_address:
                other.primary = False
        at_address.append(symbol)

    def remove_symbol(self, symbol: Symbol) -> None:
        """Removes a label. Removing a function symbol resets the function
        name to its default instead."""
        at_address = self.symbols.get(symbol.address, [])
        if symbol not in at_address:
            return
        if symbol.symbol_type is SymbolType.FUNCTION:
            function = self.functions.get(symbol.address)
            default_name = default_function_name(symbol.address)
            symbol.name = default_name
            symbol.source = SourceType.DEFAULT
            if function is not None:
                function.name = default_name
            return
        at_address.remove(symbol)
        if not at_address:
            del self.symbols[symbol.address]

    def create_label(self, address: int, name: str,
                     make_primary: bool = True) -> Symbol:
        _check_symbol_name(name)
        for symbol in self.symbols.get(address, []):
            if symbol.name == name:
                if make_primary:
                    for other in self.symbols[address]:
                        other.primary = other is symbol
                return symbol
        symbol = Symbol(name, address, SymbolType.LABEL, SourceType.ANALYSIS,
                        make_primary)
        self._add_symbol(symbol)
        return symbol

    # Comments

    def set_comment(self, address: int, comment_type: CommentType,
                    text: str) -> None:
        if text is None:
            self.comments.pop((address, comment_type), None)
            return
        self.comments[(address, comment_type)] = text

    def get_comment(self, address: int,
                    comment_type: CommentType) -> str | None:
        return self.comments.get((address, comment_type))

    # Data

    def create_data(self, address: int, data_type: DataType, length: int,
                    clear_conflicts: bool = True) -> DataItem:
        if length <= 0:
            raise CodeUnitInsertionError("cannot create %s with length %d" %
                                         (data_type.display_name(), length))
        end = address + length
        if not self._is_mapped(address, end - 1):
            raise CodeUnitInsertionError("0x%x is not in mapped memory" %
                                         address)
        for function in self.functions.values():
            if function.body[0] < end and address <= function.body[1]:
                raise CodeUnitInsertionError(
                    "data at 0x%x conflicts with instructions of %s" %
                    (address, function.name))
        conflicts = [
            item for item in self.data.values()
            if item.address < end and address < item.end
        ]
        if conflicts and not clear_conflicts:
            raise CodeUnitInsertionError("conflicting data exists at 0x%x" %
                                         conflicts[0].address)
        for item in conflicts:
            del self.data[item.address]
        item = DataItem(address, data_type, length)
        self.data[address] = item
        return item

    def get_data_at(self, address: int) -> DataItem | None:
        return self.data.get(address)

    def _is_mapped(self, start: int, end: int) -> bool:
        if not self.memory_blocks:
            return start >= 0
        return any(low <= start and end <= high
                   for low, high in self.memory_blocks)

    # Export

    def can_export(self) -> bool:
        return bool(self.executable_path) and os.path.isfile(
            self.executable_path or "")

    def export_executable(self, path: str) -> None:
        if not self.can_export():
            raise InputAcquisitionError(
                "program has no executable image to export")
        try:
            with open(self.executable_path, "rb") as src:  # type: ignore
                image = src.read()
            with open(path, "wb") as dst:
                dst.write(image)
        except OSError as err:
            raise InputAcquisitionError("failed to export %s: %s" %
                                        (path, err)) from err

    def to_dict(self) -> dict[str, Any]:
        """Summary used by the command line tool."""
        return {
            "data_types": [
                self.data_types[name].to_dict()
                for name in sorted(self.data_types)
            ],
            "functions": [
                self.functions[entry].to_dict()
                for entry in sorted(self.functions)
            ],
            "labels": [{
                "address": address,
                "name": symbol.name,
                "primary": symbol.primary,
            } for address in sorted(self.symbols)
                       for symbol in self.symbols[address]
                       if symbol.symbol_type is SymbolType.LABEL],
            "comments": [{
                "address": address,
                "type": comment_type.value,
                "text": text,
            } for (address, comment_type), text in sorted(
                self.comments.items(), key=lambda i: (i[0][0], i[0][1].value))
                         ],
            "data": [{
                "address": item.address,
                "type": item.data_type.display_name(),
                "length": item.length,
            } for _, item in sorted(self.data.items())],
        }


def _check_symbol_name(name: str | None) -> None:
    if not name or not name.strip():
        raise InvalidInputError("symbol name must not be empty")
    if any(ch.isspace() for ch in name):
        raise InvalidInputError("symbol name %r contains whitespace" % name)


def _can_reuse(existing: DataType, data_type: DataType) -> bool:
    if (isinstance(data_type, CompositeDataType)
            and data_type.is_not_yet_defined()):
        # Shells are filled after registration, so only the kind and the
        # declared size can be compared.
        return (type(existing) is type(data_type)
                and data_type.size in (0, existing.size))  # type: ignore
    return existing.is_equivalent(data_type)

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
"""AST model for stdump debug information.

The node set mirrors what ``stdump print_json`` emits for STABS symbol
tables. Each source file owns its functions and globals, while all named
and composite types live in one run-wide deduplicated table that files
reference by index.
"""

from dataclasses import dataclass, field
import enum


class StorageClass(enum.Enum):
    NONE = "none"
    TYPEDEF = "typedef"
    EXTERN = "extern"
    STATIC = "static"
    AUTO = "auto"
    REGISTER = "register"


class VariableClass(enum.Enum):
    GLOBAL = "global"
    LOCAL = "local"
    PARAMETER = "parameter"


class VariableStorageType(enum.Enum):
    GLOBAL = "global"
    REGISTER = "register"
    STACK = "stack"


class GlobalLocation(enum.Enum):
    NIL = "nil"
    DATA = "data"
    BSS = "bss"
    ABS = "abs"
    SDATA = "sdata"
    SBSS = "sbss"
    RDATA = "rdata"
    COMMON = "common"
    SCOMMON = "scommon"


class BuiltInClass(enum.Enum):
    VOID = "void"
    UNSIGNED_8 = "8-bit unsigned integer"
    SIGNED_8 = "8-bit signed integer"
    UNQUALIFIED_8 = "8-bit integer"
    BOOL_8 = "8-bit boolean"
    UNSIGNED_16 = "16-bit unsigned integer"
    SIGNED_16 = "16-bit signed integer"
    UNSIGNED_32 = "32-bit unsigned integer"
    SIGNED_32 = "32-bit signed integer"
    FLOAT_32 = "32-bit floating point"
    UNSIGNED_64 = "64-bit unsigned integer"
    SIGNED_64 = "64-bit signed integer"
    FLOAT_64 = "64-bit floating point"
    UNSIGNED_128 = "128-bit unsigned integer"
    SIGNED_128 = "128-bit signed integer"
    UNQUALIFIED_128 = "128-bit integer"
    FLOAT_128 = "128-bit floating point"
    UNKNOWN_PROBABLY_ARRAY = "error"


@dataclass(eq=False)
class Node:
    """Common attributes shared by every AST node.

    Nodes compare by identity so they can be used as cache keys.
    """

    name: str | None = None
    storage_class: StorageClass = StorageClass.NONE
    relative_offset_bytes: int = -1
    absolute_offset_bytes: int = -1
    size_bits: int = -1


@dataclass
class AddressRange:
    low: int | None = None
    high: int | None = None

    def valid(self) -> bool:
        return self.low is not None and self.high is not None


@dataclass
class LineNumberPair:
    address: int
    line_number: int


@dataclass
class SubSourceFile:
    address: int
    relative_path: str


@dataclass
class VariableStorage:
    """Where a variable lives. Exactly one of the location fields applies."""

    type: VariableStorageType = VariableStorageType.GLOBAL
    global_location: GlobalLocation = GlobalLocation.NIL
    global_address: int = -1
    register: str | None = None
    register_class: str | None = None
    dbx_register_number: int = -1
    register_index_relative: int = -1
    is_by_reference: bool = False
    stack_pointer_offset: int = -1


@dataclass(eq=False)
class Array(Node):
    element_type: Node | None = None
    element_count: int = 0


@dataclass(eq=False)
class BitField(Node):
    bitfield_offset_bits: int = 0
    underlying_type: Node | None = None


@dataclass(eq=False)
class BuiltIn(Node):
    bclass: BuiltInClass = BuiltInClass.VOID


@dataclass(eq=False)
class FunctionType(Node):
    return_type: Node | None = None
    parameters: list["Variable"] | None = None
    modifier: str | None = None
    is_constructor: bool = False
    vtable_index: int = -1


@dataclass(eq=False)
class Variable(Node):
    variable_class: VariableClass = VariableClass.GLOBAL
    storage: VariableStorage = field(default_factory=VariableStorage)
    type: Node | None = None


@dataclass(eq=False)
class FunctionDefinition(Node):
    address_range: AddressRange = field(default_factory=AddressRange)
    relative_path: str | None = None
    type: FunctionType = field(default_factory=FunctionType)
    locals: list[Variable] = field(default_factory=list)
    line_numbers: list[LineNumberPair] = field(default_factory=list)
    sub_source_files: list[SubSourceFile] = field(default_factory=list)


@dataclass(eq=False)
class InlineEnum(Node):
    constants: list[tuple[int, str]] = field(default_factory=list)


@dataclass(eq=False)
class BaseClass(Node):
    visibility: str | None = None
    offset: int = 0
    type: Node | None = None


@dataclass(eq=False)
class InlineStructOrUnion(Node):
    is_struct: bool = True
    base_classes: list[BaseClass] = field(default_factory=list)
    fields: list[Node] = field(default_factory=list)
    member_functions: list[Node] = field(default_factory=list)


@dataclass(eq=False)
class PointerOrReference(Node):
    is_pointer: bool = True
    value_type: Node | None = None


@dataclass(eq=False)
class PointerToDataMember(Node):
    class_type: Node | None = None
    member_type: Node | None = None


@dataclass(eq=False)
class TypeName(Node):
    """A reference to another type, by stabs type number or by name."""

    type_name: str = ""
    referenced_file_index: int = -1
    referenced_stabs_type_number: tuple[int, int] | None = None


@dataclass(eq=False)
class SourceFile(Node):
    path: str = ""
    relative_path: str = ""
    text_address: int = -1
    functions: list[FunctionDefinition] = field(default_factory=list)
    globals: list[Variable] = field(default_factory=list)
    stabs_type_number_to_deduplicated_type_index: dict[
        tuple[int, int], int] = field(default_factory=dict)


@dataclass
class ParsedJsonFile:
    files: list[SourceFile] = field(default_factory=list)
    deduplicated_types: list[Node] = field(default_factory=list)

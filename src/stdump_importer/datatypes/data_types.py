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
"""Data type objects stored in the program database."""

from dataclasses import dataclass, field
from typing import Any

from stdump_importer.exceptions import InvalidInputError


class DataType:
    """Base class of every type the importer produces."""

    name: str = ""

    @property
    def length(self) -> int:
        raise NotImplementedError

    def display_name(self) -> str:
        return self.name

    def is_zero_length(self) -> bool:
        return self.length <= 0

    def is_equivalent(self, other: "DataType") -> bool:
        return (type(other) is type(self)
                and other.display_name() == self.display_name()
                and other.length == self.length)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": type(self).__name__, "name": self.display_name(),
                "length": self.length}

    def __repr__(self) -> str:
        return "<%s %s>" % (type(self).__name__, self.display_name())


class VoidDataType(DataType):

    def __init__(self) -> None:
        self.name = "void"

    @property
    def length(self) -> int:
        return 0


class UndefinedDataType(DataType):
    """A sized placeholder with no known interpretation."""

    def __init__(self, size: int = 1) -> None:
        if size < 1:
            raise InvalidInputError("undefined type size must be positive")
        self.size = size
        self.name = "undefined%d" % size

    @property
    def length(self) -> int:
        return self.size


class BuiltInDataType(DataType):

    def __init__(self,
                 name: str,
                 size: int,
                 signed: bool = True,
                 is_float: bool = False,
                 is_bool: bool = False) -> None:
        self.name = name
        self.size = size
        self.signed = signed
        self.is_float = is_float
        self.is_bool = is_bool

    @property
    def length(self) -> int:
        return self.size


class PointerDataType(DataType):

    def __init__(self, data_type: DataType, size: int = 4) -> None:
        self.data_type = data_type
        self.size = size

    @property
    def name(self) -> str:  # type: ignore[override]
        return self.data_type.display_name() + " *"

    @property
    def length(self) -> int:
        return self.size


class ArrayDataType(DataType):

    def __init__(self, data_type: DataType, num_elements: int) -> None:
        if data_type.length <= 0:
            raise InvalidInputError(
                "array element type %s has no size" % data_type.display_name())
        if num_elements < 0:
            raise InvalidInputError("negative array element count")
        self.data_type = data_type
        self.num_elements = num_elements

    @property
    def name(self) -> str:  # type: ignore[override]
        return "%s[%d]" % (self.data_type.display_name(), self.num_elements)

    @property
    def length(self) -> int:
        return self.data_type.length * self.num_elements


class EnumDataType(DataType):

    def __init__(self, name: str, size: int = 4) -> None:
        self.name = name
        self.size = size
        self.values: dict[str, int] = {}

    def add(self, name: str, value: int) -> None:
        if name in self.values:
            raise InvalidInputError("duplicate enum member %s" % name)
        self.values[name] = value

    def is_equivalent(self, other: DataType) -> bool:
        return (type(other) is type(self) and other.length == self.length
                and other.values == self.values)  # type: ignore[attr-defined]

    @property
    def length(self) -> int:
        return self.size

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["values"] = dict(self.values)
        return result


class FunctionSignatureDataType(DataType):

    def __init__(self,
                 name: str,
                 return_type: DataType,
                 parameters: list[DataType] | None = None) -> None:
        self.name = name
        self.return_type = return_type
        self.parameters = list(parameters or [])

    @property
    def length(self) -> int:
        return 1


@dataclass
class DataTypeComponent:
    offset: int
    data_type: DataType
    length: int
    field_name: str | None = None
    comment: str | None = None
    bit_size: int = 0
    bit_offset: int = 0

    @property
    def is_bit_field(self) -> bool:
        return self.bit_size > 0

    def signature(self) -> tuple:
        return (self.offset, self.field_name, self.data_type.display_name(),
                self.length, self.bit_size, self.bit_offset)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "offset": self.offset,
            "name": self.field_name,
            "type": self.data_type.display_name(),
            "length": self.length,
        }
        if self.is_bit_field:
            result["bit_size"] = self.bit_size
            result["bit_offset"] = self.bit_offset
        return result


@dataclass(eq=False, repr=False)
class CompositeDataType(DataType):
    """Structures and unions. Created empty, filled in place.

    A composite with no declared size still occupies one byte.
    """

    name: str = ""
    size: int = 0
    components: list[DataTypeComponent] = field(default_factory=list)

    @property
    def length(self) -> int:
        return self.size if self.size > 0 else 1

    def is_zero_length(self) -> bool:
        return self.size <= 0

    def is_not_yet_defined(self) -> bool:
        return not self.components

    def is_equivalent(self, other: DataType) -> bool:
        """Compares layouts. Names are not compared."""
        if type(other) is not type(self):
            return False
        if other.size != self.size:  # type: ignore[attr-defined]
            return False
        return ([c.signature() for c in self.components] ==
                [c.signature() for c in other.components])  # type: ignore

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["components"] = [c.to_dict() for c in self.components]
        return result


@dataclass(eq=False, repr=False)
class StructureDataType(CompositeDataType):

    def replace_at_offset(self,
                          offset: int,
                          data_type: DataType,
                          length: int,
                          field_name: str | None,
                          comment: str | None = None) -> DataTypeComponent:
        """Places a field, displacing any component it overlaps."""
        if offset < 0:
            raise InvalidInputError("negative field offset %d" % offset)
        if length <= 0:
            raise InvalidInputError("field %s has no size" % field_name)
        end = offset + length
        self.components = [
            c for c in self.components
            if c.offset + c.length <= offset or c.offset >= end
        ]
        component = DataTypeComponent(offset, data_type, length, field_name,
                                      comment)
        self._insert(component)
        return component

    def insert_bit_field(self,
                         byte_offset: int,
                         byte_width: int,
                         bit_offset: int,
                         base_type: DataType,
                         bit_size: int,
                         field_name: str | None,
                         comment: str | None = None) -> DataTypeComponent:
        if bit_size <= 0 or byte_width <= 0:
            raise InvalidInputError("invalid bitfield %s" % field_name)
        self.components = [
            c for c in self.components if not (c.is_bit_field
                                               and c.offset == byte_offset
                                               and c.bit_offset == bit_offset)
        ]
        component = DataTypeComponent(byte_offset, base_type, byte_width,
                                      field_name, comment, bit_size,
                                      bit_offset)
        self._insert(component)
        return component

    def _insert(self, component: DataTypeComponent) -> None:
        self.components.append(component)
        self.components.sort(key=lambda c: (c.offset, c.bit_offset))
        self.size = max(self.size, component.offset + component.length)


@dataclass(eq=False, repr=False)
class UnionDataType(CompositeDataType):

    def add(self,
            data_type: DataType,
            length: int,
            field_name: str | None,
            comment: str | None = None) -> DataTypeComponent:
        if length <= 0:
            raise InvalidInputError("field %s has no size" % field_name)
        component = DataTypeComponent(0, data_type, length, field_name,
                                      comment)
        if field_name is not None:
            self.components = [
                c for c in self.components if c.field_name != field_name
            ]
        self.components.append(component)
        self.size = max(self.size, length)
        return component


def replace_void_with_undefined1(data_type: DataType | None) -> DataType:
    """Types of variables must have a size, so void becomes undefined1."""
    if data_type is None or isinstance(data_type, VoidDataType):
        return UndefinedDataType(1)
    if data_type.length <= 0:
        return UndefinedDataType(1)
    return data_type

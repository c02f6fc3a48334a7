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
"""Rebuilds the deduplicated type table as linked data type objects.

Structs and unions may reference each other in cycles, so composites are
built in two passes over the table: first every enum and every empty
struct/union shell is created and recorded at its index, then the shells
are filled in. A member that points at a shell which has not been filled
yet simply holds the shell object. Every other kind of type is built on
demand the first time something references it and cached at its index.
"""

import logging

from stdump_importer import constants
from stdump_importer.datatypes import ast
from stdump_importer.datatypes.data_types import (
    ArrayDataType,
    BuiltInDataType,
    CompositeDataType,
    DataType,
    EnumDataType,
    FunctionSignatureDataType,
    PointerDataType,
    StructureDataType,
    UndefinedDataType,
    UnionDataType,
    VoidDataType,
    replace_void_with_undefined1,
)
from stdump_importer.exceptions import InvalidInputError, TypeResolutionError
from stdump_importer.importer_state import ImporterState

logger = logging.getLogger(name=__name__)

DIAGNOSTIC_SOURCE = "types"

# (name, size, signed, is_float, is_bool)
_BUILTIN_TYPES = {
    ast.BuiltInClass.UNSIGNED_8: ("uchar", 1, False, False, False),
    ast.BuiltInClass.SIGNED_8: ("schar", 1, True, False, False),
    ast.BuiltInClass.UNQUALIFIED_8: ("char", 1, True, False, False),
    ast.BuiltInClass.BOOL_8: ("bool", 1, False, False, True),
    ast.BuiltInClass.UNSIGNED_16: ("ushort", 2, False, False, False),
    ast.BuiltInClass.SIGNED_16: ("short", 2, True, False, False),
    ast.BuiltInClass.UNSIGNED_32: ("uint", 4, False, False, False),
    ast.BuiltInClass.SIGNED_32: ("int", 4, True, False, False),
    ast.BuiltInClass.FLOAT_32: ("float", 4, True, True, False),
    ast.BuiltInClass.UNSIGNED_64: ("ulonglong", 8, False, False, False),
    ast.BuiltInClass.SIGNED_64: ("longlong", 8, True, False, False),
    ast.BuiltInClass.FLOAT_64: ("double", 8, True, True, False),
    ast.BuiltInClass.UNSIGNED_128: ("uint128", 16, False, False, False),
    ast.BuiltInClass.SIGNED_128: ("int128", 16, True, False, False),
    ast.BuiltInClass.FLOAT_128: ("float128", 16, True, True, False),
}


def prepare_type_lookup(importer: ImporterState) -> None:
    """Fills in the lookup tables used to resolve type references.

    Safe to call more than once; only the first call does any work.
    """
    if importer.lookup_prepared:
        return
    importer.stabs_type_number_to_deduplicated_type_index = [
        source_file.stabs_type_number_to_deduplicated_type_index
        for source_file in importer.ast.files
    ]
    importer.type_name_to_deduplicated_type_index = {}
    for index, node in enumerate(importer.ast.deduplicated_types):
        if node.name:
            # Later entries win when two translation units share a name.
            importer.type_name_to_deduplicated_type_index[node.name] = index
    importer.types = [None] * len(importer.ast.deduplicated_types)
    importer.lookup_prepared = True


def import_data_types(importer: ImporterState) -> None:
    """Creates every enum, struct and union of the deduplicated table."""
    prepare_type_lookup(importer)
    table = importer.ast.deduplicated_types
    logger.info("Importing %d deduplicated types", len(table))

    # Shell phase.
    for index, node in enumerate(table):
        if importer.monitor.is_cancelled():
            logger.info("Type import cancelled at index %d", index)
            return
        try:
            match node:
                case ast.InlineEnum():
                    data_type = create_enum(node, importer,
                                            _table_type_name(node, index))
                case ast.InlineStructOrUnion():
                    data_type = create_empty(node,
                                             _table_type_name(node, index))
                case _:
                    continue
            importer.types[index] = importer.program.add_data_type(data_type)
        except (InvalidInputError, TypeResolutionError) as err:
            importer.diagnostics.append_msg(
                "Failed to create type %s: %s" %
                (_table_type_name(node, index), err), DIAGNOSTIC_SOURCE)

    # Fill phase.
    filled = 0
    for index, node in enumerate(table):
        if importer.monitor.is_cancelled():
            logger.info("Type import cancelled at index %d", index)
            return
        match node, importer.types[index]:
            case ast.InlineStructOrUnion(), CompositeDataType() as shell:
                fill(shell, node, importer)
                filled += 1
    logger.info("Filled %d structs and unions", filled)


def create_enum(node: ast.InlineEnum, importer: ImporterState,
                name: str) -> EnumDataType:
    enum_type = EnumDataType(name, constants.ENUM_SIZE)
    for value, constant_name in node.constants:
        try:
            enum_type.add(constant_name, value)
        except InvalidInputError as err:
            importer.diagnostics.append_msg(
                "Skipping constant of enum %s: %s" % (name, err),
                DIAGNOSTIC_SOURCE)
    return enum_type


def create_empty(node: ast.InlineStructOrUnion,
                 name: str) -> CompositeDataType:
    """Creates a struct or union shell with no members."""
    size = node.size_bits // 8 if node.size_bits > 0 else 0
    if node.is_struct:
        return StructureDataType(name=name, size=size)
    return UnionDataType(name=name, size=size)


def fill(shell: CompositeDataType, node: ast.InlineStructOrUnion,
         importer: ImporterState) -> None:
    """Populates a shell in place with the members of node.

    Placing a member replaces one already at the same position, so filling
    a type registered by an earlier run gives the same layout again.
    """
    if isinstance(shell, StructureDataType):
        for index, base_class in enumerate(node.base_classes):
            try:
                base_type = create_type(base_class.type, importer)
                shell.replace_at_offset(base_class.offset, base_type,
                                        base_type.length, "base_%d" % index)
            except (InvalidInputError, TypeResolutionError) as err:
                importer.diagnostics.append_msg(
                    "Failed to add base class %d to %s: %s" %
                    (index, shell.name, err), DIAGNOSTIC_SOURCE)

    for index, field_node in enumerate(node.fields):
        field_name = field_node.name or "field_%d" % index
        try:
            _add_field(shell, field_node, field_name, importer)
        except (InvalidInputError, TypeResolutionError) as err:
            importer.diagnostics.append_msg(
                "Failed to add field %s to %s: %s" %
                (field_name, shell.name, err), DIAGNOSTIC_SOURCE)


def _add_field(shell: CompositeDataType, field_node: ast.Node,
               field_name: str, importer: ImporterState) -> None:
    match field_node, shell:
        case ast.BitField(), StructureDataType():
            underlying = _bitfield_underlying_type(field_node, importer)
            shell.insert_bit_field(max(field_node.relative_offset_bytes, 0),
                                   underlying.length,
                                   field_node.bitfield_offset_bits,
                                   underlying, field_node.size_bits,
                                   field_name)
            return
        case ast.BitField(), UnionDataType():
            underlying = _bitfield_underlying_type(field_node, importer)
            shell.add(underlying, underlying.length, field_name)
            return

    # Anonymous nested composites get a name derived from their parent.
    nested_name = "%s__%s" % (shell.name, field_name)
    field_type = create_type(field_node, importer, nested_name)
    if isinstance(field_type, VoidDataType):
        field_type = replace_void_with_undefined1(field_type)
    length = field_type.length
    if field_type.is_zero_length() and field_node.size_bits > 0:
        length = field_node.size_bits // 8
    if length <= 0:
        raise InvalidInputError("type %s has no size" %
                                field_type.display_name())
    if isinstance(shell, StructureDataType):
        shell.replace_at_offset(max(field_node.relative_offset_bytes, 0),
                                field_type, length, field_name)
    else:
        shell.add(field_type, length, field_name)


def _bitfield_underlying_type(field_node: ast.BitField,
                              importer: ImporterState) -> DataType:
    return replace_void_with_undefined1(
        create_type(field_node.underlying_type, importer))


def create_type(node: ast.Node | None,
                importer: ImporterState,
                name_hint: str | None = None) -> DataType:
    """Returns the data type a node describes.

    Raises TypeResolutionError for nodes that do not describe a type.
    """
    match node:
        case None:
            raise TypeResolutionError("missing type")
        case ast.TypeName():
            return resolve_type_name(node, importer)
        case ast.BuiltIn():
            return _builtin(node.bclass, importer)
        case ast.PointerOrReference():
            pointee = create_type(node.value_type, importer)
            return pointer_to(pointee, importer)
        case ast.Array():
            element = create_type(node.element_type, importer)
            if element.length <= 0:
                element = UndefinedDataType(1)
            key = ("array", id(element), node.element_count)
            if key not in importer.derived_type_cache:
                importer.derived_type_cache[key] = ArrayDataType(
                    element, node.element_count)
            return importer.derived_type_cache[key]
        case ast.BitField():
            return create_type(node.underlying_type, importer)
        case ast.PointerToDataMember():
            return UndefinedDataType(importer.program.pointer_size)
        case ast.FunctionType():
            return _function_signature(node, importer, name_hint)
        case ast.InlineEnum():
            key = ("node", id(node))
            if key not in importer.derived_type_cache:
                importer.derived_type_cache[key] = create_enum(
                    node, importer, node.name or name_hint or "__anon_enum")
            return importer.derived_type_cache[key]
        case ast.InlineStructOrUnion():
            key = ("node", id(node))
            if key not in importer.derived_type_cache:
                shell = create_empty(node, node.name or name_hint
                                     or "__anon_struct")
                importer.derived_type_cache[key] = shell
                fill(shell, node, importer)
            return importer.derived_type_cache[key]
        case _:
            raise TypeResolutionError("%s does not describe a type" %
                                      type(node).__name__)


def resolve_type_name(node: ast.TypeName,
                      importer: ImporterState) -> DataType:
    if (node.type_name == "void"
            and node.referenced_stabs_type_number is None):
        return _builtin(ast.BuiltInClass.VOID, importer)
    index = lookup_type_index(node, importer)
    if index is None:
        importer.diagnostics.append_msg(
            "Failed to lookup type: %s" % (node.type_name or "<unnamed>"),
            DIAGNOSTIC_SOURCE)
        return UndefinedDataType(1)
    return type_at_index(index, importer)


def lookup_type_index(node: ast.TypeName,
                      importer: ImporterState) -> int | None:
    prepare_type_lookup(importer)
    maps = importer.stabs_type_number_to_deduplicated_type_index
    number = node.referenced_stabs_type_number
    if number is not None and 0 <= node.referenced_file_index < len(maps):
        index = maps[node.referenced_file_index].get(number)
        if index is not None:
            return index
    if node.type_name:
        return importer.type_name_to_deduplicated_type_index.get(
            node.type_name)
    return None


def type_at_index(index: int, importer: ImporterState) -> DataType:
    """Materializes the deduplicated type at index, at most once."""
    prepare_type_lookup(importer)
    if not 0 <= index < len(importer.types):
        importer.diagnostics.append_msg(
            "Type index %d out of range" % index, DIAGNOSTIC_SOURCE)
        return UndefinedDataType(1)
    existing = importer.types[index]
    if existing is not None:
        return existing
    if index in importer.resolving:
        importer.diagnostics.append_msg(
            "Type %d refers to itself, using undefined1" % index,
            DIAGNOSTIC_SOURCE)
        return UndefinedDataType(1)

    node = importer.ast.deduplicated_types[index]
    name = _table_type_name(node, index)
    importer.resolving.add(index)
    try:
        match node:
            case ast.InlineStructOrUnion():
                shell = importer.program.add_data_type(
                    create_empty(node, name))
                importer.types[index] = shell
                fill(shell, node, importer)  # type: ignore[arg-type]
                return shell
            case ast.InlineEnum():
                data_type = importer.program.add_data_type(
                    create_enum(node, importer, name))
            case _:
                data_type = create_type(node, importer, name)
    except (InvalidInputError, TypeResolutionError) as err:
        importer.diagnostics.append_msg(
            "Failed to create type %s: %s" % (name, err), DIAGNOSTIC_SOURCE)
        data_type = UndefinedDataType(1)
    finally:
        importer.resolving.discard(index)
    importer.types[index] = data_type
    return data_type


def create_variable_type(node: ast.Node | None,
                         importer: ImporterState) -> DataType:
    """Resolves the type of a parameter, local or global.

    Variables need a size, so void and unresolvable types become undefined1.
    """
    try:
        return replace_void_with_undefined1(create_type(node, importer))
    except (InvalidInputError, TypeResolutionError) as err:
        importer.diagnostics.append_msg("Failed to create type: %s" % err,
                                        DIAGNOSTIC_SOURCE)
        return UndefinedDataType(1)


def _builtin(bclass: ast.BuiltInClass, importer: ImporterState) -> DataType:
    key = ("builtin", bclass)
    cached = importer.derived_type_cache.get(key)
    if cached is not None:
        return cached
    data_type: DataType
    if bclass is ast.BuiltInClass.VOID:
        data_type = VoidDataType()
    elif bclass in _BUILTIN_TYPES:
        name, size, signed, is_float, is_bool = _BUILTIN_TYPES[bclass]
        data_type = BuiltInDataType(name, size, signed, is_float, is_bool)
    elif bclass is ast.BuiltInClass.UNQUALIFIED_128:
        data_type = UndefinedDataType(16)
    else:
        data_type = UndefinedDataType(1)
    importer.derived_type_cache[key] = data_type
    return data_type


def pointer_to(pointee: DataType, importer: ImporterState) -> DataType:
    """Returns the shared pointer type for pointee."""
    size = importer.program.pointer_size
    key = ("pointer", id(pointee), size)
    if key not in importer.derived_type_cache:
        importer.derived_type_cache[key] = PointerDataType(pointee, size)
    return importer.derived_type_cache[key]


def _function_signature(node: ast.FunctionType, importer: ImporterState,
                        name_hint: str | None) -> DataType:
    key = ("node", id(node))
    cached = importer.derived_type_cache.get(key)
    if cached is not None:
        return cached
    if node.return_type is not None:
        return_type = create_type(node.return_type, importer)
    else:
        return_type = _builtin(ast.BuiltInClass.VOID, importer)
    parameters = [
        create_variable_type(parameter.type, importer)
        for parameter in node.parameters or []
    ]
    signature = FunctionSignatureDataType(
        node.name or name_hint or "__anon_function", return_type, parameters)
    importer.derived_type_cache[key] = signature
    return signature


def _table_type_name(node: ast.Node, index: int) -> str:
    return node.name or "__anon_type_%d" % index

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
"""Reads the JSON document printed by ``stdump print_json`` into an AST."""

import json
import logging
from typing import Any, Callable

from stdump_importer.datatypes import ast
from stdump_importer.exceptions import DocumentFormatError

logger = logging.getLogger(name=__name__)

SUPPORTED_FORMAT_VERSIONS = (1, 2)


def read_json(document: bytes | str) -> ast.ParsedJsonFile:
    """Parses a stdump JSON document.

    Raises DocumentFormatError if the bytes are not JSON or the structure
    does not match what stdump emits.
    """
    if isinstance(document, bytes):
        document = document.decode("utf-8", errors="replace")
    try:
        root = json.loads(document)
    except json.JSONDecodeError as err:
        raise DocumentFormatError("stdump output is not valid JSON: %s" %
                                  err) from err
    if not isinstance(root, dict):
        raise DocumentFormatError("stdump output must be a JSON object")

    version = root.get("version")
    if version is not None and version not in SUPPORTED_FORMAT_VERSIONS:
        logger.warning("Unknown stdump format version %r, continuing",
                       version)

    try:
        files = [_expect(_read_node(f), ast.SourceFile) for f in root["files"]]
        deduplicated_types = [
            _read_node(t) for t in root.get("deduplicated_types", [])
        ]
    except (KeyError, TypeError, ValueError) as err:
        raise DocumentFormatError("malformed stdump document: %s: %s" %
                                  (type(err).__name__, err)) from err

    logger.info("Parsed %d source files and %d deduplicated types",
                len(files), len(deduplicated_types))
    return ast.ParsedJsonFile(files=files,
                              deduplicated_types=deduplicated_types)


def read_json_file(path: str) -> ast.ParsedJsonFile:
    with open(path, "rb") as f:
        return read_json(f.read())


def _expect(node: ast.Node, node_class: type) -> Any:
    if not isinstance(node, node_class):
        raise ValueError("expected %s, got %s" %
                         (node_class.__name__, type(node).__name__))
    return node


def _read_optional(value: dict[str, Any] | None) -> ast.Node | None:
    if value is None:
        return None
    return _read_node(value)


def _read_node(value: dict[str, Any]) -> ast.Node:
    descriptor = value["descriptor"]
    reader = _NODE_READERS.get(descriptor)
    if reader is None:
        raise ValueError("unknown node descriptor %r" % descriptor)
    node = reader(value)
    node.name = value.get("name") or None
    node.storage_class = ast.StorageClass(value.get("storage_class", "none"))
    node.relative_offset_bytes = int(value.get("relative_offset_bytes", -1))
    node.absolute_offset_bytes = int(value.get("absolute_offset_bytes", -1))
    node.size_bits = int(value.get("size_bits", -1))
    return node


def _read_array(value: dict[str, Any]) -> ast.Node:
    return ast.Array(element_type=_read_node(value["element_type"]),
                     element_count=int(value["element_count"]))


def _read_bitfield(value: dict[str, Any]) -> ast.Node:
    return ast.BitField(
        bitfield_offset_bits=int(value["bitfield_offset_bits"]),
        underlying_type=_read_node(value["underlying_type"]))


def _read_builtin(value: dict[str, Any]) -> ast.Node:
    return ast.BuiltIn(bclass=ast.BuiltInClass(value["class"]))


def _read_enum(value: dict[str, Any]) -> ast.Node:
    return ast.InlineEnum(constants=[(int(c["value"]), c["name"])
                                     for c in value["constants"]])


def _read_function_definition(value: dict[str, Any]) -> ast.Node:
    address_range = value.get("address_range") or {}
    function_type = _expect(_read_node(value["type"]), ast.FunctionType)
    return ast.FunctionDefinition(
        address_range=ast.AddressRange(address_range.get("low"),
                                       address_range.get("high")),
        relative_path=value.get("relative_path"),
        type=function_type,
        locals=[
            _expect(_read_node(v), ast.Variable)
            for v in value.get("locals", [])
        ],
        line_numbers=[
            ast.LineNumberPair(int(p["address"]), int(p["line_number"]))
            for p in value.get("line_numbers", [])
        ],
        sub_source_files=[
            ast.SubSourceFile(int(s["address"]), s["path"])
            for s in value.get("sub_source_files", [])
        ],
    )


def _read_function_type(value: dict[str, Any]) -> ast.Node:
    parameters = value.get("parameters")
    return ast.FunctionType(
        return_type=_read_optional(value.get("return_type")),
        parameters=None if parameters is None else
        [_expect(_read_node(p), ast.Variable) for p in parameters],
        modifier=value.get("modifier"),
        is_constructor=bool(value.get("is_constructor", False)),
        vtable_index=int(value.get("vtable_index", -1)),
    )


def _read_struct_or_union(value: dict[str, Any]) -> ast.Node:
    if value["descriptor"] == "inline_struct_or_union":
        is_struct = bool(value.get("is_struct", True))
    else:
        is_struct = value["descriptor"] == "struct"
    base_classes = []
    for base in value.get("base_classes", []):
        base_classes.append(
            ast.BaseClass(name=base.get("name"),
                          visibility=base.get("visibility"),
                          offset=int(base.get("offset", 0)),
                          type=_read_node(base["type"])))
    return ast.InlineStructOrUnion(
        is_struct=is_struct,
        base_classes=base_classes,
        fields=[_read_node(f) for f in value.get("fields", [])],
        member_functions=[
            _read_node(f) for f in value.get("member_functions", [])
        ],
    )


def _read_pointer_or_reference(value: dict[str, Any]) -> ast.Node:
    if value["descriptor"] == "pointer_or_reference":
        is_pointer = bool(value.get("is_pointer", True))
    else:
        is_pointer = value["descriptor"] == "pointer"
    return ast.PointerOrReference(is_pointer=is_pointer,
                                  value_type=_read_node(value["value_type"]))


def _read_pointer_to_data_member(value: dict[str, Any]) -> ast.Node:
    return ast.PointerToDataMember(
        class_type=_read_optional(value.get("class_type")),
        member_type=_read_optional(value.get("member_type")))


def _read_type_number(value: dict[str, Any] | int | None
                      ) -> tuple[int, int] | None:
    if value is None:
        return None
    if isinstance(value, int):
        return (-1, value)
    return (int(value.get("file", -1)), int(value["type"]))


def _read_source_file(value: dict[str, Any]) -> ast.Node:
    type_map = {}
    for entry in value.get("stabs_type_number_to_deduplicated_type_index",
                           []):
        type_map[_read_type_number(entry)] = int(entry["index"])
    return ast.SourceFile(
        path=value["path"],
        relative_path=value.get("relative_path", value["path"]),
        text_address=int(value.get("text_address", -1)),
        functions=[
            _expect(_read_node(f), ast.FunctionDefinition)
            for f in value.get("functions", [])
        ],
        globals=[
            _expect(_read_node(g), ast.Variable)
            for g in value.get("globals", [])
        ],
        stabs_type_number_to_deduplicated_type_index=type_map,
    )


def _read_type_name(value: dict[str, Any]) -> ast.Node:
    return ast.TypeName(
        type_name=value.get("type_name", ""),
        referenced_file_index=int(value.get("referenced_file_index", -1)),
        referenced_stabs_type_number=_read_type_number(
            value.get("referenced_stabs_type_number")),
    )


def _read_storage(value: dict[str, Any]) -> ast.VariableStorage:
    return ast.VariableStorage(
        type=ast.VariableStorageType(value["type"]),
        global_location=ast.GlobalLocation(
            value.get("global_location", "nil")),
        global_address=int(value.get("global_address", -1)),
        register=value.get("register"),
        register_class=value.get("register_class"),
        dbx_register_number=int(value.get("dbx_register_number", -1)),
        register_index_relative=int(value.get("register_index", -1)),
        is_by_reference=bool(value.get("is_by_reference", False)),
        stack_pointer_offset=int(value.get("stack_offset", -1)),
    )


def _read_variable(value: dict[str, Any]) -> ast.Node:
    return ast.Variable(
        variable_class=ast.VariableClass(value.get("class", "global")),
        storage=_read_storage(value["storage"]),
        type=_read_node(value["type"]),
    )


_NODE_READERS: dict[str, Callable[[dict[str, Any]], ast.Node]] = {
    "array": _read_array,
    "bitfield": _read_bitfield,
    "builtin": _read_builtin,
    "enum": _read_enum,
    "inline_enum": _read_enum,
    "function_definition": _read_function_definition,
    "function_type": _read_function_type,
    "struct": _read_struct_or_union,
    "union": _read_struct_or_union,
    "inline_struct_or_union": _read_struct_or_union,
    "pointer": _read_pointer_or_reference,
    "reference": _read_pointer_or_reference,
    "pointer_or_reference": _read_pointer_or_reference,
    "pointer_to_data_member": _read_pointer_to_data_member,
    "source_file": _read_source_file,
    "type_name": _read_type_name,
    "variable": _read_variable,
}

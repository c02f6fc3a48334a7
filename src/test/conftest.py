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
"""Shared fixtures for the stdump importer tests."""

import json
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.realpath(__file__)) + "/../")

MAIN_LOW = 0x100000
MAIN_HIGH = 0x100040
GLOBAL_ADDRESS = 0x200000


def _type_name(name, stabs_type=None):
    node = {"descriptor": "type_name", "type_name": name}
    if stabs_type is not None:
        node["referenced_file_index"] = 0
        node["referenced_stabs_type_number"] = {"type": stabs_type}
    return node


@pytest.fixture
def sample_document():
    """A small stdump document with one file, one function and two
    globals."""
    return {
        "version": 1,
        "files": [{
            "descriptor": "source_file",
            "path": "/home/user/game/src/main.c",
            "relative_path": "src/main.c",
            "text_address": MAIN_LOW,
            "stabs_type_number_to_deduplicated_type_index": [
                {"type": 1, "index": 0},
                {"type": 2, "index": 1},
                {"type": 3, "index": 2},
            ],
            "functions": [{
                "descriptor": "function_definition",
                "name": "main",
                "address_range": {"low": MAIN_LOW, "high": MAIN_HIGH},
                "type": {
                    "descriptor": "function_type",
                    "return_type": _type_name("int", 1),
                    "parameters": [{
                        "descriptor": "variable",
                        "name": "argc",
                        "class": "parameter",
                        "storage": {"type": "register", "register": "a0"},
                        "type": _type_name("int", 1),
                    }],
                },
                "locals": [{
                    "descriptor": "variable",
                    "name": "head",
                    "class": "local",
                    "storage_class": "auto",
                    "storage": {"type": "stack", "stack_offset": 16},
                    "type": {
                        "descriptor": "pointer",
                        "value_type": _type_name("Node", 2),
                    },
                }],
                "line_numbers": [
                    {"address": MAIN_LOW, "line_number": 10},
                    {"address": MAIN_LOW + 0x10, "line_number": 11},
                ],
                "sub_source_files": [
                    {"address": MAIN_LOW, "path": "src/main.c"},
                    {"address": MAIN_LOW + 0x10, "path": "include/list.h"},
                    {"address": MAIN_LOW + 0x20, "path": "src/main.c"},
                ],
            }],
            "globals": [{
                "descriptor": "variable",
                "name": "g_color",
                "class": "global",
                "storage": {
                    "type": "global",
                    "global_location": "data",
                    "global_address": GLOBAL_ADDRESS,
                },
                "type": _type_name("Color", 3),
            }, {
                "descriptor": "variable",
                "name": "g_extern",
                "class": "global",
                "storage_class": "extern",
                "storage": {"type": "global", "global_address": -1},
                "type": _type_name("int", 1),
            }],
        }],
        "deduplicated_types": [{
            "descriptor": "builtin",
            "name": "int",
            "class": "32-bit signed integer",
        }, {
            "descriptor": "struct",
            "name": "Node",
            "size_bits": 64,
            "fields": [{
                "descriptor": "pointer",
                "name": "next",
                "relative_offset_bytes": 0,
                "value_type": _type_name("Node", 2),
            }, {
                "descriptor": "type_name",
                "name": "value",
                "relative_offset_bytes": 4,
                "type_name": "int",
                "referenced_file_index": 0,
                "referenced_stabs_type_number": {"type": 1},
            }],
        }, {
            "descriptor": "enum",
            "name": "Color",
            "constants": [
                {"value": 0, "name": "RED"},
                {"value": 1, "name": "GREEN"},
            ],
        }],
    }


@pytest.fixture
def sample_json_path(tmp_path, sample_document):
    path = tmp_path / "main.json"
    path.write_text(json.dumps(sample_document))
    return str(path)

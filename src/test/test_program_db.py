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
"""Tests for the in-memory program database."""

import pytest

from stdump_importer.datatypes.data_types import (
    ArrayDataType,
    BuiltInDataType,
    EnumDataType,
    StructureDataType,
    UndefinedDataType,
    UnionDataType,
    VoidDataType,
    replace_void_with_undefined1,
)
from stdump_importer.exceptions import (
    CodeUnitInsertionError,
    DuplicateNameError,
    InputAcquisitionError,
    InvalidInputError,
)
from stdump_importer.program_db import (
    CallingConvention,
    CommentType,
    InMemoryProgram,
    LocalVariable,
    Parameter,
    ProgramDatabase,
    SourceType,
    SymbolType,
)

INT = BuiltInDataType("int", 4)


def test_calling_convention_spills_to_stack():
    convention = CallingConvention("test", ("a0", "a1"),
                                   stack_parameter_offset=0x10)

    assert convention.assign_storage([4, 16, 4, 1, 2]) == [
        "a0", "Stack[0x10]", "a1", "Stack[0x20]", "Stack[0x24]"
    ]


def test_create_function_and_rename():
    program = InMemoryProgram()

    function = program.create_function("main", 0x1000, (0x1000, 0x10ff),
                                       SourceType.ANALYSIS)

    assert function.name == "main"
    assert program.get_function_containing(0x1080) is function
    symbol = program.get_symbols(0x1000)[0]
    assert (symbol.name, symbol.symbol_type, symbol.primary) == (
        "main", SymbolType.FUNCTION, True)


def test_create_function_rejects_overlap():
    program = InMemoryProgram()
    program.create_function("a", 0x1000, (0x1000, 0x10ff), SourceType.ANALYSIS)

    with pytest.raises(CodeUnitInsertionError):
        program.create_function("a", 0x1000, None, SourceType.ANALYSIS)
    with pytest.raises(CodeUnitInsertionError):
        program.create_function("b", 0x1080, (0x1080, 0x1200),
                                SourceType.ANALYSIS)
    with pytest.raises(InvalidInputError):
        program.create_function("c", 0x3000, (0x3010, 0x3000),
                                SourceType.ANALYSIS)


def test_removing_function_symbol_resets_name():
    program = InMemoryProgram()
    function = program.create_function("main", 0x1000, None,
                                       SourceType.ANALYSIS)

    program.remove_symbol(program.get_symbols(0x1000)[0])

    assert function.name == "FUN_00001000"
    assert program.get_symbols(0x1000)[0].name == "FUN_00001000"


def test_invalid_symbol_names():
    program = InMemoryProgram()
    function = program.create_function(None, 0x1000, None,
                                       SourceType.ANALYSIS)

    with pytest.raises(InvalidInputError):
        function.set_name("", SourceType.ANALYSIS)
    with pytest.raises(InvalidInputError):
        program.create_label(0x2000, "two words")


def test_create_label_is_convergent():
    program = InMemoryProgram()
    first = program.create_label(0x2000, "g_a")
    program.create_label(0x2000, "g_b")

    again = program.create_label(0x2000, "g_a")

    assert again is first
    assert [(s.name, s.primary) for s in program.get_symbols(0x2000)] == [
        ("g_a", True), ("g_b", False)
    ]


def test_parameters_and_locals():
    program = InMemoryProgram()
    function = program.create_function("f", 0x1000, None, SourceType.ANALYSIS)
    function.add_local_variable(LocalVariable("n", INT, 8),
                                SourceType.ANALYSIS)

    function.replace_parameters([Parameter("n", INT)], SourceType.ANALYSIS)

    assert [p.storage for p in function.parameters] == ["a0"]
    assert function.locals == []
    with pytest.raises(DuplicateNameError):
        function.add_local_variable(LocalVariable("n", INT, 12),
                                    SourceType.ANALYSIS)
    with pytest.raises(DuplicateNameError):
        function.replace_parameters(
            [Parameter("x", INT), Parameter("x", INT)], SourceType.ANALYSIS)


def test_local_at_same_offset_is_replaced():
    program = InMemoryProgram()
    function = program.create_function("f", 0x1000, None, SourceType.ANALYSIS)
    function.add_local_variable(LocalVariable("a", INT, 8),
                                SourceType.ANALYSIS)

    function.add_local_variable(LocalVariable("b", INT, 8),
                                SourceType.ANALYSIS)

    assert [v.name for v in function.locals] == ["b"]
    with pytest.raises(DuplicateNameError):
        function.add_local_variable(LocalVariable("b", INT, 4),
                                    SourceType.ANALYSIS)


def test_create_data_checks():
    program = InMemoryProgram(memory_blocks=[(0x2000, 0x2fff)])
    program.create_function("f", 0x2800, (0x2800, 0x28ff),
                            SourceType.ANALYSIS)

    with pytest.raises(CodeUnitInsertionError, match="not in mapped"):
        program.create_data(0x4000, INT, 4)
    with pytest.raises(CodeUnitInsertionError, match="instructions"):
        program.create_data(0x27fe, INT, 4)
    with pytest.raises(CodeUnitInsertionError):
        program.create_data(0x2000, VoidDataType(), 0)

    program.create_data(0x2000, UndefinedDataType(8), 8)
    with pytest.raises(CodeUnitInsertionError, match="conflicting"):
        program.create_data(0x2004, INT, 4, clear_conflicts=False)
    program.create_data(0x2004, INT, 4)
    assert sorted(program.data) == [0x2004]


def test_add_data_type_renames_conflicts():
    program = InMemoryProgram()
    first = program.add_data_type(StructureDataType(name="S", size=4))
    second = program.add_data_type(StructureDataType(name="S", size=8))
    third = program.add_data_type(StructureDataType(name="S", size=12))

    assert first.name == "S"
    assert second.name == "S.conflict"
    assert third.name == "S.conflict1"
    assert program.add_data_type(first) is first


def test_comments():
    program = InMemoryProgram()
    program.set_comment(0x10, CommentType.EOL, "Line 3")
    program.set_comment(0x10, CommentType.PRE, "inlined from a.h")

    assert program.get_comment(0x10, CommentType.EOL) == "Line 3"
    program.set_comment(0x10, CommentType.EOL, None)
    assert program.get_comment(0x10, CommentType.EOL) is None
    assert program.get_comment(0x10, CommentType.PRE) == "inlined from a.h"


def test_export_executable(tmp_path):
    image = tmp_path / "game.elf"
    image.write_bytes(b"\x7fELF")
    program = InMemoryProgram(executable_path=str(image))
    target = tmp_path / "copy.elf"

    program.export_executable(str(target))

    assert target.read_bytes() == b"\x7fELF"
    with pytest.raises(InputAcquisitionError):
        InMemoryProgram().export_executable(str(target))


def test_data_type_helpers():
    enum_type = EnumDataType("Color")
    enum_type.add("RED", 0)
    with pytest.raises(InvalidInputError):
        enum_type.add("RED", 1)
    with pytest.raises(InvalidInputError):
        ArrayDataType(VoidDataType(), 3)

    assert replace_void_with_undefined1(None).name == "undefined1"
    assert replace_void_with_undefined1(VoidDataType()).name == "undefined1"
    assert replace_void_with_undefined1(INT) is INT
    empty = StructureDataType(name="Empty")
    assert replace_void_with_undefined1(empty) is empty


def test_add_data_type_reuses_equivalent_types():
    program = InMemoryProgram()
    color = EnumDataType("Color")
    color.add("RED", 0)
    same_color = EnumDataType("Color")
    same_color.add("RED", 0)
    other_color = EnumDataType("Color")
    other_color.add("BLUE", 0)

    assert program.add_data_type(color) is color
    assert program.add_data_type(same_color) is color
    assert program.add_data_type(other_color).name == "Color.conflict"

    again = EnumDataType("Color")
    again.add("BLUE", 0)
    assert program.add_data_type(again) is other_color
    assert sorted(program.data_types) == ["Color", "Color.conflict"]


def test_filled_struct_equivalence():
    first = StructureDataType(name="P", size=8)
    first.replace_at_offset(0, INT, 4, "x")
    second = StructureDataType(name="P", size=8)
    second.replace_at_offset(0, INT, 4, "x")
    third = StructureDataType(name="P", size=8)
    third.replace_at_offset(4, INT, 4, "x")
    program = InMemoryProgram()

    assert program.add_data_type(first) is first
    assert program.add_data_type(second) is first
    assert program.add_data_type(third).name == "P.conflict"


def test_empty_composite_occupies_one_byte():
    empty = StructureDataType(name="Opaque")

    assert empty.length == 1
    assert empty.is_zero_length()
    assert not StructureDataType(name="Sized", size=4).is_zero_length()


def test_union_add_replaces_member_with_same_name():
    union = UnionDataType(name="U")
    union.add(INT, 4, "i")
    union.add(BuiltInDataType("double", 8), 8, "d")
    union.add(INT, 4, "i")

    assert [c.field_name for c in union.components] == ["d", "i"]
    assert union.length == 8


def test_program_database_is_abstract():

    class PartialProgram(ProgramDatabase):

        def add_data_type(self, data_type):
            return data_type

    with pytest.raises(TypeError):
        ProgramDatabase()
    with pytest.raises(TypeError):
        PartialProgram()

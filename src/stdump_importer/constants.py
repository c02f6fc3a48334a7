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
"""Constants shared by the importer modules."""

# Labels emitted by old GCC versions at the start of every translation unit.
# They land on the first function of the file and confuse auto-naming.
COMPILER_NOISE_LABELS = (
    "__gnu_compiled_cplusplus",
    "gcc2_compiled.",
)

LINE_NUMBER_COMMENT_FORMAT = "Line %d"
INLINED_FROM_COMMENT_FORMAT = "inlined from %s"
END_OF_INLINED_SECTION_COMMENT = "end of inlined section"

STDUMP_EXECUTABLE = "stdump"
STDUMP_PRINT_JSON_COMMAND = "print_json"
STDUMP_DIAGNOSTIC_SOURCE = "stdump"

TEMP_ELF_PREFIX = "stdump_input"
TEMP_ELF_SUFFIX = ".elf"

DEFAULT_POINTER_SIZE = 4
ENUM_SIZE = 4

# Environment overrides for import options.
ENV_PREFIX = "STDUMP_IMPORT_"

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
"""Command line entry point for stdump-import."""

import argparse
import json
import logging
import sys
from typing import Sequence

from stdump_importer import config
from stdump_importer import constants
from stdump_importer import importer
from stdump_importer.exceptions import ConfigurationError
from stdump_importer.importer_state import Diagnostics
from stdump_importer.program_db import InMemoryProgram

logger = logging.getLogger(name=__name__)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="stdump-import",
        description=("Import STABS debug information reported by stdump "
                     "into a program database and print the result."))
    parser.add_argument("--config", default="", help="YAML options file")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--elf",
                        default="",
                        help="ELF file to run stdump against")
    source.add_argument("--json",
                        default="",
                        help="Existing stdump print_json output")
    parser.add_argument("--stdump", default="", help="Path to stdump")
    parser.add_argument("--no-types",
                        dest="import_data_types",
                        action="store_false",
                        default=None)
    parser.add_argument("--no-functions",
                        dest="import_functions",
                        action="store_false",
                        default=None)
    parser.add_argument("--no-globals",
                        dest="import_globals",
                        action="store_false",
                        default=None)
    parser.add_argument("--no-inline-markers",
                        dest="mark_inlined_code",
                        action="store_false",
                        default=None)
    parser.add_argument("--no-line-numbers",
                        dest="output_line_numbers",
                        action="store_false",
                        default=None)
    parser.add_argument("--pointer-size",
                        type=int,
                        default=constants.DEFAULT_POINTER_SIZE)
    parser.add_argument("--output",
                        default="",
                        help="Write the resulting database here (JSON)")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def _overrides_from_args(args: argparse.Namespace) -> dict:
    overrides = {}
    for name in ("import_data_types", "import_functions", "import_globals",
                 "mark_inlined_code", "output_line_numbers"):
        value = getattr(args, name)
        if value is not None:
            overrides[name] = value
    if args.elf:
        overrides["override_elf_path"] = args.elf
    if args.json:
        overrides["override_json_path"] = args.json
    if args.stdump:
        overrides["stdump_path"] = args.stdump
    return overrides


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        options = config.load_options(args.config or None,
                                      _overrides_from_args(args))
    except ConfigurationError as err:
        logger.error("%s", err)
        return 1

    program = InMemoryProgram(executable_path=args.elf or None,
                              pointer_size=args.pointer_size)
    diagnostics = Diagnostics()
    _, success = importer.run_import(program,
                                     options,
                                     diagnostics=diagnostics)
    if not success:
        logger.error("Import failed")
        return 1

    result = program.to_dict()
    result["diagnostics"] = [{
        "source": entry.source,
        "message": entry.message
    } for entry in diagnostics.entries]
    if args.output:
        with open(args.output, "w") as f:
            json.dump(result, f, indent=2)
        logger.info("Wrote %s", args.output)
    else:
        json.dump(result, sys.stdout, indent=2)
        sys.stdout.write("\n")
    return 0

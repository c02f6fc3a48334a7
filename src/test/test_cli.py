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
"""Tests for the stdump-import command line tool."""

import json
import os

import pytest

from conftest import GLOBAL_ADDRESS, MAIN_LOW

from stdump_importer import cli


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in list(os.environ):
        if name.startswith("STDUMP_IMPORT_"):
            monkeypatch.delenv(name)


def test_import_json_to_output_file(tmp_path, sample_json_path):
    output = tmp_path / "result.json"

    assert cli.main(["--json", sample_json_path, "--output",
                     str(output)]) == 0

    result = json.loads(output.read_text())
    assert [f["name"] for f in result["functions"]] == ["main"]
    assert result["functions"][0]["entry"] == MAIN_LOW
    assert {"address": GLOBAL_ADDRESS, "name": "g_color",
            "primary": True} in result["labels"]
    assert "Node" in [t["name"] for t in result["data_types"]]
    assert result["diagnostics"] == []


def test_import_json_to_stdout(capsys, sample_json_path):
    assert cli.main(["--json", sample_json_path, "--no-functions"]) == 0

    result = json.loads(capsys.readouterr().out)
    assert result["functions"] == []
    assert result["data"][0]["type"] == "Color"


def test_options_file_is_applied(tmp_path, sample_json_path):
    config_path = tmp_path / "options.yaml"
    config_path.write_text("outputLineNumbers: false\n"
                           "mark_inlined_code: false\n")
    output = tmp_path / "result.json"

    assert cli.main([
        "--config",
        str(config_path), "--json", sample_json_path, "--output",
        str(output)
    ]) == 0

    result = json.loads(output.read_text())
    assert result["comments"] == []


def test_missing_json_fails(tmp_path):
    assert cli.main(["--json", str(tmp_path / "missing.json")]) == 1


def test_invalid_config_fails(tmp_path, sample_json_path):
    config_path = tmp_path / "options.yaml"
    config_path.write_text("- not a mapping\n")

    assert cli.main(["--config",
                     str(config_path), "--json", sample_json_path]) == 1


def test_elf_and_json_are_exclusive(sample_json_path):
    with pytest.raises(SystemExit):
        cli.main(["--elf", "game.elf", "--json", sample_json_path])

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
"""Loads import options from YAML files and the environment."""

import dataclasses
import logging
import os
from typing import Any

import yaml

from stdump_importer import constants
from stdump_importer.exceptions import ConfigurationError
from stdump_importer.importer_state import ImportOptions

logger = logging.getLogger(name=__name__)

# camelCase spellings accepted in option files.
CAMEL_CASE_ALIASES = {
    "importDataTypes": "import_data_types",
    "importFunctions": "import_functions",
    "importGlobals": "import_globals",
    "markInlinedCode": "mark_inlined_code",
    "outputLineNumbers": "output_line_numbers",
    "overrideElfPath": "override_elf_path",
    "overrideJsonPath": "override_json_path",
    "stdumpPath": "stdump_path",
    "stdumpTimeoutSeconds": "stdump_timeout_seconds",
}

_FIELD_TYPES = {
    field.name: field.type
    for field in dataclasses.fields(ImportOptions)
}


def _parse_bool_env(var_name: str, default: bool) -> bool:
    raw = os.environ.get(var_name, "")
    if raw == "":
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


def _parse_int_env(var_name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(var_name, "")
    if raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r; using default %d", var_name, raw,
                       default)
        return default
    if value < minimum:
        logger.warning("Invalid %s=%r; using minimum %d", var_name, raw,
                       minimum)
        return minimum
    return value


def load_yaml_options(path: str) -> dict[str, Any]:
    try:
        with open(path, "r") as yaml_f:
            content = yaml.safe_load(yaml_f)
    except OSError as err:
        raise ConfigurationError("cannot read %s: %s" % (path, err)) from err
    except yaml.YAMLError as err:
        raise ConfigurationError("invalid YAML in %s: %s" %
                                 (path, err)) from err
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError("%s must contain a mapping" % path)
    return content


def apply_values(options: ImportOptions, values: dict[str, Any]) -> None:
    """Copies recognised keys onto options, warning about the rest."""
    for key, value in values.items():
        name = CAMEL_CASE_ALIASES.get(key, key)
        expected = _FIELD_TYPES.get(name)
        if expected is None:
            logger.warning("Ignoring unknown option %r", key)
            continue
        if expected in (bool, "bool") and not isinstance(value, bool):
            logger.warning("Option %s must be a boolean, got %r", key, value)
            continue
        if expected in (int, "int") and (isinstance(value, bool)
                                         or not isinstance(value, int)):
            logger.warning("Option %s must be an integer, got %r", key, value)
            continue
        if expected in (str, "str"):
            value = "" if value is None else str(value)
        setattr(options, name, value)


def apply_environment(options: ImportOptions) -> None:
    for name, expected in _FIELD_TYPES.items():
        env_name = constants.ENV_PREFIX + name.upper()
        if expected in (bool, "bool"):
            setattr(options, name,
                    _parse_bool_env(env_name, getattr(options, name)))
        elif expected in (int, "int"):
            setattr(options, name,
                    _parse_int_env(env_name, getattr(options, name)))
        else:
            raw = os.environ.get(env_name, "")
            if raw:
                setattr(options, name, raw)


def load_options(config_path: str | None = None,
                 overrides: dict[str, Any] | None = None) -> ImportOptions:
    """Builds options from defaults, a YAML file, the environment and
    explicit overrides, in that order."""
    options = ImportOptions()
    if config_path:
        logger.info("Loading options from %s", config_path)
        apply_values(options, load_yaml_options(config_path))
    apply_environment(options)
    if overrides:
        apply_values(options, overrides)
    return options

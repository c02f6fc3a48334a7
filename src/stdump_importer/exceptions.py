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
"""Exceptions raised while importing debug information."""


class ImporterError(Exception):
    """Base class for all import errors."""

    pass


class InputAcquisitionError(ImporterError):
    """Raised when the debug-info document cannot be obtained.

    This is the only error class that aborts an import run.
    """

    pass


class DocumentFormatError(InputAcquisitionError):
    """Raised when the stdump document cannot be turned into an AST."""

    pass


class TypeResolutionError(ImporterError):
    """Raised when a type reference cannot be resolved."""

    pass


class SymbolMutationError(ImporterError):
    """Raised by the program database when a mutation is rejected."""

    pass


class DuplicateNameError(SymbolMutationError):
    """Raised when a name is already used in the same scope."""

    pass


class InvalidInputError(SymbolMutationError):
    """Raised when a program database call receives invalid input."""

    pass


class CodeUnitInsertionError(SymbolMutationError):
    """Raised when data cannot be placed at an address."""

    pass


class ConfigurationError(ImporterError):
    """Raised when an options file cannot be read."""

    pass

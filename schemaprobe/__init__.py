"""schemaprobe: validate live API responses against schema-builder expressions.

The engine surface is four functions: :func:`resolve` a library version,
:func:`compile` schema source against it, :func:`validate` a payload and
:func:`run` a full request-and-validate test.
"""

from schemaprobe.dsl.compiler import CompileError, CompileErrorKind, compile
from schemaprobe.orchestrator.orchestrator import run
from schemaprobe.orchestrator.types import RunContext, TestResult
from schemaprobe.resolver.resolver import UnknownVersionError, VersionBinding, resolve
from schemaprobe.validator import ValidationError, ValidationResult, validate

__all__ = [
    "CompileError",
    "CompileErrorKind",
    "RunContext",
    "TestResult",
    "UnknownVersionError",
    "ValidationError",
    "ValidationResult",
    "VersionBinding",
    "compile",
    "resolve",
    "run",
    "validate",
]

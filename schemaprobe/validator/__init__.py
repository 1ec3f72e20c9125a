"""Public entry points for schema validation."""

from schemaprobe.validator.base import (
    UNDEFINED,
    CompiledSchema,
    Schema,
    SchemaDefinitionError,
    ValidationError,
    ValidationResult,
)
from schemaprobe.validator.executor import validate
from schemaprobe.validator.samples import SampleOptions, SampleResult, generate_sample_data

__all__ = [
    "UNDEFINED",
    "CompiledSchema",
    "Schema",
    "SampleOptions",
    "SampleResult",
    "SchemaDefinitionError",
    "ValidationError",
    "ValidationResult",
    "generate_sample_data",
    "validate",
]

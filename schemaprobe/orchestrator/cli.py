"""schemaprobe command-line interface."""

from __future__ import annotations

import argparse
import ast
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml

from schemaprobe.dsl.compiler import CompileError, compile as compile_schema
from schemaprobe.resolver.namespaces import NAMESPACES
from schemaprobe.resolver.resolver import UnknownVersionError
from schemaprobe.telemetry import logger as telemetry_logger
from schemaprobe.utils.config import DEFAULT_CONFIG_PATH
from schemaprobe.validator.executor import validate
from schemaprobe.validator.samples import SampleOptions, generate_sample_data

from . import orchestrator
from .types import ProbeConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schemaprobe", description="Validate live API responses against schema expressions"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH if DEFAULT_CONFIG_PATH.exists() else None,
        help="Optional path to a schemaprobe configuration YAML file.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        metavar="KEY=VALUE",
        help="Override configuration values using dot notation (e.g. request.timeout=5).",
    )
    parser.add_argument(
        "--log-config", type=Path, help="Alternative logging configuration YAML file."
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    _add_run_parser(subparsers)
    _add_batch_parser(subparsers)
    _add_check_parser(subparsers)
    _add_compile_parser(subparsers)
    _add_sample_parser(subparsers)
    _add_versions_parser(subparsers)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        if args.log_config is not None:
            telemetry_logger.configure(args.log_config, force=True)
        overrides = _parse_overrides(args.overrides)
        config = orchestrator.load_configuration(args.config, overrides=overrides)
        orchestrator.configure_telemetry(config)
        if args.command == "run":
            return _cmd_run(args, config)
        if args.command == "batch":
            return _cmd_batch(args, config)
        if args.command == "check":
            return _cmd_check(args, config)
        if args.command == "compile":
            return _cmd_compile(args, config)
        if args.command == "sample":
            return _cmd_sample(args, config)
        if args.command == "versions":
            return _cmd_versions(args, config)
    except Exception as exc:  # pragma: no cover - CLI guard
        print(f"[schemaprobe] error: {exc}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


# ---------------------------------------------------------------------------
# Sub-command wiring


def _add_schema_arguments(parser: argparse.ArgumentParser) -> None:
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--schema", type=Path, help="File containing the schema expression")
    source.add_argument("--source", help="Schema expression given inline")
    parser.add_argument("--version", dest="schema_version", help="Library version to compile against")


def _add_run_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("run", help="Request an endpoint and validate the response")
    _add_schema_arguments(parser)
    parser.add_argument("--endpoint", required=True, help="URL to request")
    parser.add_argument("--method", default="GET", help="HTTP method (default GET)")
    parser.add_argument(
        "--header",
        dest="headers",
        action="append",
        metavar="NAME:VALUE",
        help="Request header (repeat for multiple values)",
    )
    body = parser.add_mutually_exclusive_group()
    body.add_argument("--body", help="JSON request body for POST/PUT/PATCH")
    body.add_argument("--body-file", type=Path, help="File containing the JSON request body")


def _add_batch_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("batch", help="Run every schema listed in a YAML/JSON file")
    parser.add_argument(
        "entries", type=Path, help="File with a list of {name, source, endpoint, headers}"
    )
    parser.add_argument("--version", dest="schema_version", help="Library version for every entry")


def _add_check_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("check", help="Validate a local JSON document")
    _add_schema_arguments(parser)
    parser.add_argument("data", type=Path, help="JSON document to validate")


def _add_compile_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("compile", help="Compile a schema and report errors")
    _add_schema_arguments(parser)


def _add_sample_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("sample", help="Generate sample data that fits a schema")
    _add_schema_arguments(parser)
    parser.add_argument("--count", type=int, default=1, help="Number of payloads (default 1)")
    parser.add_argument("--seed", help="Seed for reproducible output")
    parser.add_argument(
        "--include-nulls", action="store_true", help="Use null for nullable fields"
    )
    parser.add_argument("--min-array-length", type=int, default=1)
    parser.add_argument("--max-array-length", type=int, default=5)
    parser.add_argument("--min-string-length", type=int, default=3)
    parser.add_argument("--max-string-length", type=int, default=10)
    parser.add_argument("--min-number", type=float, default=0)
    parser.add_argument("--max-number", type=float, default=100)


def _add_versions_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("versions", help="List supported library versions")
    parser.add_argument(
        "--vocabulary", action="store_true", help="Include constructors and modifiers per version"
    )


# ---------------------------------------------------------------------------
# Command implementations


def _cmd_run(args: argparse.Namespace, config: ProbeConfig) -> int:
    body = args.body
    if args.body_file is not None:
        body = args.body_file.read_text(encoding="utf-8")
    context = orchestrator.build_context(config)
    result = asyncio.run(
        orchestrator.run(
            _load_source(args),
            args.schema_version,
            args.endpoint,
            args.method,
            _parse_headers(args.headers),
            body,
            context,
        )
    )
    _print_json(result.to_dict())
    validation = result.validation_result
    return 0 if result.success and validation is not None and validation.is_valid else 1


def _cmd_batch(args: argparse.Namespace, config: ProbeConfig) -> int:
    raw = yaml.safe_load(args.entries.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError("batch file must contain a list of schema entries")
    context = orchestrator.build_context(config)
    results = asyncio.run(orchestrator.run_many(raw, args.schema_version, context))
    _print_json([item.to_dict() for item in results])
    passed = all(
        item.result.validation_result is not None and item.result.validation_result.is_valid
        for item in results
    )
    return 0 if passed else 1


def _cmd_check(args: argparse.Namespace, config: ProbeConfig) -> int:
    data = json.loads(args.data.read_text(encoding="utf-8"))
    compiled = _compile(args, config)
    if compiled is None:
        return 1
    result = validate(compiled, data, unknown_keys=config.validator.unknown_keys)
    _print_json(result.to_dict())
    return 0 if result.is_valid else 1


def _cmd_compile(args: argparse.Namespace, config: ProbeConfig) -> int:
    compiled = _compile(args, config)
    if compiled is None:
        return 1
    _print_json({"compiled": True, "version": compiled.version, "kind": compiled.schema.kind})
    return 0


def _cmd_sample(args: argparse.Namespace, config: ProbeConfig) -> int:
    compiled = _compile(args, config)
    if compiled is None:
        return 1
    options = SampleOptions(
        count=args.count,
        include_nulls=args.include_nulls,
        min_array_length=args.min_array_length,
        max_array_length=args.max_array_length,
        min_string_length=args.min_string_length,
        max_string_length=args.max_string_length,
        min_number=args.min_number,
        max_number=args.max_number,
        seed=args.seed,
    )
    result = generate_sample_data(compiled, options, unknown_keys=config.validator.unknown_keys)
    _print_json(result.to_dict())
    return 0 if result.success else 1


def _cmd_versions(args: argparse.Namespace, config: ProbeConfig) -> int:
    listing: list[dict[str, Any]] = []
    for version, namespace in NAMESPACES.items():
        entry: dict[str, Any] = {
            "version": version,
            "default": version == config.resolver.default_version,
        }
        if args.vocabulary:
            entry["vocabulary"] = namespace.vocabulary()
        listing.append(entry)
    _print_json(listing)
    return 0


# ---------------------------------------------------------------------------
# Helpers


def _compile(args: argparse.Namespace, config: ProbeConfig):
    version = args.schema_version or config.resolver.default_version
    context = orchestrator.build_context(config)
    try:
        binding = asyncio.run(context.resolver.resolve(version))
        return compile_schema(_load_source(args), binding)
    except UnknownVersionError as exc:
        _print_json({"compiled": False, "error": {"kind": "UnknownVersion", "message": str(exc)}})
    except CompileError as exc:
        _print_json({"compiled": False, "error": exc.to_dict()})
    return None


def _load_source(args: argparse.Namespace) -> str:
    if args.schema is not None:
        return args.schema.read_text(encoding="utf-8")
    return args.source


def _parse_headers(raw: Sequence[str] | None) -> dict[str, str]:
    headers: dict[str, str] = {}
    for item in raw or ():
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"header '{item}' must look like NAME:VALUE")
        headers[name.strip()] = value.strip()
    return headers


def _parse_overrides(raw: Sequence[str] | None) -> Mapping[str, Any]:
    overrides: dict[str, Any] = {}
    if not raw:
        return overrides
    for item in raw:
        key, sep, value_text = item.partition("=")
        if not sep:
            raise ValueError(f"override '{item}' is missing '='")
        key_parts = [part for part in key.split(".") if part]
        if not key_parts:
            raise ValueError("override key must not be empty")
        value = _coerce_literal(value_text)
        cursor = overrides
        for part in key_parts[:-1]:
            cursor = cursor.setdefault(part, {})  # type: ignore[assignment]
            if not isinstance(cursor, dict):
                raise ValueError(f"override '{key}' conflicts with an existing value")
        cursor[key_parts[-1]] = value
    return overrides


def _coerce_literal(value: str) -> Any:
    try:
        return ast.literal_eval(value)
    except (ValueError, SyntaxError):
        return value


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

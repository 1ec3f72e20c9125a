"""Typed data transfer objects for the schemaprobe orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping

from schemaprobe.resolver.namespaces import DEFAULT_VERSION
from schemaprobe.resolver.resolver import DEFAULT_FETCH_TIMEOUT, DEFAULT_URL_TEMPLATE
from schemaprobe.utils.config import deep_update
from schemaprobe.validator.base import UNKNOWN_KEY_POLICIES, ValidationResult

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from schemaprobe.resolver.resolver import VersionResolver

    from .request_client import RequestClient

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

SaveCallback = Callable[[str], "Awaitable[None] | None"]


def _coerce_float(value: Any, *, fallback: float) -> float:
    if value is None:
        return fallback
    try:
        return float(value)
    except (TypeError, ValueError):
        return fallback


def _coerce_bool(value: Any, *, fallback: bool) -> bool:
    if value is None:
        return fallback
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


@dataclass(slots=True)
class ResolverOptions:
    """Version selection and declaration fetching."""

    default_version: str = DEFAULT_VERSION
    fetch_declarations: bool = True
    url_template: str = DEFAULT_URL_TEMPLATE
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT


@dataclass(slots=True)
class RequestOptions:
    """Settings applied by the request client to every call."""

    timeout: float = 10.0
    follow_redirects: bool = True
    default_headers: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class ValidatorOptions:
    """Policy for object fields the schema does not declare."""

    unknown_keys: str = "strip"


@dataclass(slots=True)
class TelemetryOptions:
    """Where metric samples go; in memory unless ``export_path`` is set."""

    export_path: str | None = None


@dataclass(slots=True)
class ProbeConfig:
    """Top-level configuration bundle."""

    resolver: ResolverOptions = field(default_factory=ResolverOptions)
    request: RequestOptions = field(default_factory=RequestOptions)
    validator: ValidatorOptions = field(default_factory=ValidatorOptions)
    telemetry: TelemetryOptions = field(default_factory=TelemetryOptions)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "ProbeConfig":
        payload = dict(data or {})
        return cls(
            resolver=cls._build_resolver_options(payload.get("resolver")),
            request=cls._build_request_options(payload.get("request")),
            validator=cls._build_validator_options(payload.get("validator")),
            telemetry=cls._build_telemetry_options(payload.get("telemetry")),
        )

    def merge(self, overrides: Mapping[str, Any] | None) -> "ProbeConfig":
        if not overrides:
            return self
        return ProbeConfig.from_mapping(deep_update(self.to_dict(), overrides))

    def to_dict(self) -> dict[str, Any]:
        return {
            "resolver": {
                "default_version": self.resolver.default_version,
                "declarations": {
                    "enabled": self.resolver.fetch_declarations,
                    "url_template": self.resolver.url_template,
                    "timeout": self.resolver.fetch_timeout,
                },
            },
            "request": {
                "timeout": self.request.timeout,
                "follow_redirects": self.request.follow_redirects,
                "default_headers": dict(self.request.default_headers),
            },
            "validator": {"unknown_keys": self.validator.unknown_keys},
            "telemetry": {"export_path": self.telemetry.export_path},
        }

    @staticmethod
    def _build_resolver_options(data: Any) -> ResolverOptions:
        defaults = ResolverOptions()
        if not isinstance(data, Mapping):
            return defaults
        declarations = data.get("declarations")
        declarations = declarations if isinstance(declarations, Mapping) else {}
        return ResolverOptions(
            default_version=str(data.get("default_version") or defaults.default_version),
            fetch_declarations=_coerce_bool(
                declarations.get("enabled"), fallback=defaults.fetch_declarations
            ),
            url_template=str(declarations.get("url_template") or defaults.url_template),
            fetch_timeout=_coerce_float(declarations.get("timeout"), fallback=defaults.fetch_timeout),
        )

    @staticmethod
    def _build_request_options(data: Any) -> RequestOptions:
        defaults = RequestOptions()
        if not isinstance(data, Mapping):
            return defaults
        headers = data.get("default_headers")
        return RequestOptions(
            timeout=_coerce_float(data.get("timeout"), fallback=defaults.timeout),
            follow_redirects=_coerce_bool(
                data.get("follow_redirects"), fallback=defaults.follow_redirects
            ),
            default_headers=(
                {str(key): str(value) for key, value in headers.items()}
                if isinstance(headers, Mapping)
                else {}
            ),
        )

    @staticmethod
    def _build_validator_options(data: Any) -> ValidatorOptions:
        if not isinstance(data, Mapping):
            return ValidatorOptions()
        policy = str(data.get("unknown_keys") or "strip")
        if policy not in UNKNOWN_KEY_POLICIES:
            raise ValueError(
                f"validator.unknown_keys must be one of {', '.join(UNKNOWN_KEY_POLICIES)}, "
                f"got {policy!r}"
            )
        return ValidatorOptions(unknown_keys=policy)

    @staticmethod
    def _build_telemetry_options(data: Any) -> TelemetryOptions:
        if not isinstance(data, Mapping):
            return TelemetryOptions()
        path = data.get("export_path")
        return TelemetryOptions(export_path=str(path) if path else None)


@dataclass(slots=True)
class TestResult:
    """Outcome of one orchestrated schema test.

    ``success`` reports whether validation ran to completion; whether the data
    matched lives in ``validation_result.is_valid``. ``outcome`` names the
    stage that decided the result. ``duration_ms`` is excluded from equality.
    """

    __test__ = False

    success: bool
    message: str
    outcome: str
    response_status: int | None = None
    response_status_text: str | None = None
    response_headers: dict[str, str] | None = None
    validation_result: ValidationResult | None = None
    data: Any = None
    duration_ms: float = field(default=0.0, compare=False)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "outcome": self.outcome,
        }
        if self.response_status is not None:
            payload["responseStatus"] = self.response_status
            payload["responseStatusText"] = self.response_status_text
            payload["responseHeaders"] = dict(self.response_headers or {})
            payload["data"] = self.data
        if self.validation_result is not None:
            payload["validationResult"] = self.validation_result.to_dict()
        payload["durationMs"] = round(self.duration_ms, 3)
        return payload


@dataclass(slots=True)
class SchemaEntry:
    """Stored schema used by batch runs."""

    name: str
    source: str
    endpoint: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SchemaEntry":
        headers = data.get("headers")
        return cls(
            name=str(data.get("name") or "schema"),
            source=str(data.get("source") or data.get("content") or ""),
            endpoint=data.get("endpoint") or data.get("endpoint_url") or None,
            headers=dict(headers) if isinstance(headers, Mapping) else {},
        )


@dataclass(slots=True)
class BatchResult:
    """Result of one entry of :func:`run_many`."""

    name: str
    result: TestResult

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, **self.result.to_dict()}


@dataclass(slots=True)
class RunContext:
    """Collaborators and settings shared by orchestrated runs."""

    config: ProbeConfig = field(default_factory=ProbeConfig)
    request_client: "RequestClient | None" = None
    resolver: "VersionResolver | None" = None
    save_request_body: SaveCallback | None = None


__all__ = [
    "BODY_METHODS",
    "BatchResult",
    "ProbeConfig",
    "RequestOptions",
    "ResolverOptions",
    "RunContext",
    "SaveCallback",
    "SchemaEntry",
    "TelemetryOptions",
    "TestResult",
    "ValidatorOptions",
]

"""Version resolution with a single-flight binding cache.

``resolve(version)`` returns the :class:`VersionBinding` for a supported
library version. The first resolution of a version may fetch declaration text
over HTTP; the binding is then cached for the lifetime of the resolver and
returned as the very same object on every later call. While a fetch is in
flight the cache slot holds an :class:`asyncio.Future`, so concurrent callers
await the same fetch instead of starting their own.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping, Optional

import httpx

from schemaprobe.telemetry import hooks, metrics
from schemaprobe.telemetry.logger import get_logger

from .namespaces import DEFAULT_VERSION, NAMESPACES, BuilderNamespace

_LOGGER = get_logger("schemaprobe.resolver")

DEFAULT_URL_TEMPLATE = "https://cdn.jsdelivr.net/npm/zod@{version}/lib/types.d.ts"
DEFAULT_FETCH_TIMEOUT = 10.0

DeclarationFetcher = Callable[[str], Awaitable[str]]


class UnknownVersionError(LookupError):
    """Raised when a version string is not in the supported set."""

    def __init__(self, version: str) -> None:
        super().__init__(f"Unsupported version '{version}'")
        self.version = version


@dataclass(frozen=True, eq=False)
class VersionBinding:
    """Builder namespace plus declaration text for one version."""

    version: str
    namespace: BuilderNamespace
    declaration_text: str = ""


class HttpDeclarationFetcher:
    """Fetch the published type declarations for a version with ``httpx``."""

    def __init__(
        self,
        url_template: str = DEFAULT_URL_TEMPLATE,
        *,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url_template = url_template
        self.timeout = timeout
        self._transport = transport

    def url_for(self, version: str) -> str:
        return self.url_template.format(version=version)

    async def __call__(self, version: str) -> str:
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport, follow_redirects=True
        ) as client:
            response = await client.get(self.url_for(version))
            response.raise_for_status()
            return response.text


class VersionResolver:
    """Explicit populate-once cache of version bindings."""

    def __init__(
        self,
        *,
        fetcher: Optional[DeclarationFetcher] = None,
        namespaces: Mapping[str, BuilderNamespace] = NAMESPACES,
    ) -> None:
        self._fetcher = fetcher
        self._namespaces = namespaces
        self._cache: dict[str, VersionBinding | asyncio.Future[VersionBinding]] = {}

    def supported_versions(self) -> list[str]:
        return list(self._namespaces)

    def cached_versions(self) -> list[str]:
        """Versions whose binding is fully populated (in-flight fetches excluded)."""

        return [
            version for version, entry in self._cache.items() if isinstance(entry, VersionBinding)
        ]

    async def resolve(self, version: str) -> VersionBinding:
        namespace = self._namespaces.get(version)
        if namespace is None:
            raise UnknownVersionError(version)
        entry = self._cache.get(version)
        if isinstance(entry, VersionBinding):
            return entry
        if entry is not None:
            return await asyncio.shield(entry)

        pending: asyncio.Future[VersionBinding] = asyncio.get_running_loop().create_future()
        self._cache[version] = pending
        try:
            text = await self._fetch(version)
        except asyncio.CancelledError:
            self._cache.pop(version, None)
            pending.cancel()
            raise
        binding = VersionBinding(version=version, namespace=namespace, declaration_text=text)
        self._cache[version] = binding
        pending.set_result(binding)
        hooks.dispatch(
            hooks.VERSION_RESOLVED,
            {"version": version, "declaration_bytes": len(text)},
        )
        return binding

    async def _fetch(self, version: str) -> str:
        if self._fetcher is None:
            return ""
        started = time.perf_counter()
        metrics.emit("schemaprobe.resolver.fetches", 1, tags={"version": version})
        try:
            text = await self._fetcher(version)
        except Exception as exc:
            _LOGGER.warning("declaration fetch failed | version=%s error=%s", version, exc)
            return ""
        _LOGGER.info(
            "declarations fetched | version=%s bytes=%d elapsed_ms=%.1f",
            version,
            len(text),
            (time.perf_counter() - started) * 1000.0,
        )
        return text


_DEFAULT_RESOLVER: VersionResolver | None = None


def default_resolver() -> VersionResolver:
    """Return the process-wide resolver, creating it on first use."""

    global _DEFAULT_RESOLVER
    if _DEFAULT_RESOLVER is None:
        _DEFAULT_RESOLVER = VersionResolver(fetcher=HttpDeclarationFetcher())
    return _DEFAULT_RESOLVER


def set_default_resolver(resolver: VersionResolver | None) -> None:
    """Replace the process-wide resolver (``None`` resets to lazy creation)."""

    global _DEFAULT_RESOLVER
    _DEFAULT_RESOLVER = resolver


async def resolve(version: str = DEFAULT_VERSION) -> VersionBinding:
    """Resolve ``version`` through the process-wide resolver."""

    return await default_resolver().resolve(version)


__all__ = [
    "DEFAULT_URL_TEMPLATE",
    "DeclarationFetcher",
    "HttpDeclarationFetcher",
    "UnknownVersionError",
    "VersionBinding",
    "VersionResolver",
    "default_resolver",
    "resolve",
    "set_default_resolver",
]

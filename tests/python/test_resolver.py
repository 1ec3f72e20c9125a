"""Version resolver caching, single-flight fetches and namespace table."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from schemaprobe.resolver import namespaces
from schemaprobe.resolver.resolver import (
    HttpDeclarationFetcher,
    UnknownVersionError,
    VersionResolver,
)
from schemaprobe.telemetry import hooks


class CountingFetcher:
    def __init__(self, text: str = "declare const z: unknown;", *, fail: bool = False) -> None:
        self.calls: list[str] = []
        self.text = text
        self.fail = fail

    async def __call__(self, version: str) -> str:
        self.calls.append(version)
        # Yield a few times so concurrent callers observe the in-flight slot.
        for _ in range(3):
            await asyncio.sleep(0)
        if self.fail:
            raise RuntimeError("cdn unavailable")
        return f"{self.text} // {version}"


@pytest.mark.parametrize("version", namespaces.supported_versions())
def test_resolve_twice_returns_same_binding(version):
    fetcher = CountingFetcher()
    resolver = VersionResolver(fetcher=fetcher)

    async def scenario():
        return await resolver.resolve(version), await resolver.resolve(version)

    first, second = asyncio.run(scenario())
    assert first is second
    assert first.version == version
    assert first.declaration_text.endswith(version)
    assert fetcher.calls == [version]


def test_concurrent_resolutions_share_one_fetch():
    fetcher = CountingFetcher()
    resolver = VersionResolver(fetcher=fetcher)

    async def scenario():
        return await asyncio.gather(*(resolver.resolve("3.22.0") for _ in range(5)))

    bindings = asyncio.run(scenario())
    assert all(binding is bindings[0] for binding in bindings)
    assert fetcher.calls == ["3.22.0"]
    assert resolver.cached_versions() == ["3.22.0"]


def test_unknown_version_is_rejected_without_fetching():
    fetcher = CountingFetcher()
    resolver = VersionResolver(fetcher=fetcher)
    with pytest.raises(UnknownVersionError) as exc:
        asyncio.run(resolver.resolve("9.9.9"))
    assert exc.value.version == "9.9.9"
    assert fetcher.calls == []
    assert resolver.cached_versions() == []


def test_failed_fetch_still_produces_a_cached_binding():
    fetcher = CountingFetcher(fail=True)
    resolver = VersionResolver(fetcher=fetcher)

    async def scenario():
        return await resolver.resolve("3.24.2"), await resolver.resolve("3.24.2")

    first, second = asyncio.run(scenario())
    assert first is second
    assert first.declaration_text == ""
    assert fetcher.calls == ["3.24.2"]


def test_binding_is_reused_across_event_loops():
    resolver = VersionResolver(fetcher=CountingFetcher())
    first = asyncio.run(resolver.resolve("3.20.0"))
    second = asyncio.run(resolver.resolve("3.20.0"))
    assert first is second


def test_http_fetcher_requests_versioned_declarations():
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, text="export declare type ZodTypeAny = any;")

    fetcher = HttpDeclarationFetcher(transport=httpx.MockTransport(handler))
    resolver = VersionResolver(fetcher=fetcher)
    binding = asyncio.run(resolver.resolve("3.22.0"))

    assert seen == ["https://cdn.jsdelivr.net/npm/zod@3.22.0/lib/types.d.ts"]
    assert binding.declaration_text == "export declare type ZodTypeAny = any;"


def test_http_fetch_error_status_yields_empty_declarations():
    fetcher = HttpDeclarationFetcher(
        "https://example.test/{version}.d.ts",
        transport=httpx.MockTransport(lambda request: httpx.Response(404, text="missing")),
    )
    binding = asyncio.run(VersionResolver(fetcher=fetcher).resolve("3.18.0"))
    assert binding.declaration_text == ""


def test_resolution_dispatches_hook():
    events = []
    with hooks.register_hook(hooks.VERSION_RESOLVED, events.append):
        asyncio.run(VersionResolver().resolve("3.24.2"))
    assert [event.payload["version"] for event in events] == ["3.24.2"]
    assert events[0].payload["declaration_bytes"] == 0


def test_namespace_table_is_ordered_newest_first():
    assert namespaces.supported_versions() == ["3.24.2", "3.22.0", "3.20.0", "3.18.0"]
    assert namespaces.DEFAULT_VERSION == "3.24.2"


def test_newer_versions_extend_older_vocabularies():
    versions = namespaces.supported_versions()
    for newer, older in zip(versions, versions[1:]):
        newer_vocab = namespaces.NAMESPACES[newer].vocabulary()
        older_vocab = namespaces.NAMESPACES[older].vocabulary()
        for group, names in older_vocab.items():
            assert set(names) <= set(newer_vocab[group])


def test_vocabulary_lists_string_modifiers():
    vocab = namespaces.NAMESPACES["3.24.2"].vocabulary()
    assert "nanoid" in vocab["string"]
    assert "nanoid" not in namespaces.NAMESPACES["3.22.0"].vocabulary()["string"]
    assert "or" in vocab["common"]

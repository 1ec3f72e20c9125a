"""Integration coverage for the orchestrated request-and-validate pipeline."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from schemaprobe.orchestrator import orchestrator
from schemaprobe.orchestrator.request_client import RequestClient
from schemaprobe.orchestrator.types import ProbeConfig, RunContext, SchemaEntry
from schemaprobe.resolver.resolver import VersionResolver
from schemaprobe.telemetry import hooks

PERSON = "z.object({ name: z.string(), age: z.number() })"
ENDPOINT = "https://api.example.test/people/1"


class FakeApi:
    """Records requests and replies through an httpx mock transport."""

    def __init__(self, response: httpx.Response | None = None, error: Exception | None = None):
        self.requests: list[httpx.Request] = []
        self.response = response or httpx.Response(200, json={"name": "Ada", "age": 36})
        self.error = error

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response

    def context(self, config: ProbeConfig | None = None, **kwargs) -> RunContext:
        config = config or ProbeConfig()
        client = RequestClient(config.request, transport=httpx.MockTransport(self.handler))
        return RunContext(
            config=config, request_client=client, resolver=VersionResolver(), **kwargs
        )


def run(ctx: RunContext, schema: str = PERSON, **kwargs):
    params = {"version": "3.24.2", "endpoint": ENDPOINT, "method": "GET", "headers": {}}
    params.update(kwargs)
    return asyncio.run(
        orchestrator.run(
            schema,
            params["version"],
            params["endpoint"],
            params["method"],
            params["headers"],
            params.get("body"),
            ctx,
        )
    )


def test_passing_response_is_reported_as_passed():
    api = FakeApi()
    result = run(api.context())

    assert result.success is True
    assert result.outcome == "validated"
    assert result.message == "Schema test passed"
    assert result.response_status == 200
    assert result.response_status_text == "OK"
    assert result.data == {"name": "Ada", "age": 36}
    assert result.validation_result.is_valid
    assert len(api.requests) == 1


def test_error_status_is_still_validated():
    api = FakeApi(httpx.Response(404, json={"error": "not found"}))
    result = run(api.context())

    assert result.success is True
    assert result.message == "Schema test failed: 2 error(s)"
    assert result.response_status == 404
    assert result.response_status_text == "Not Found"
    assert [error.path for error in result.validation_result.errors] == [("name",), ("age",)]


def test_non_json_response_is_validated_as_text():
    api = FakeApi(httpx.Response(200, text="plain body"))
    result = run(api.context(), schema="z.string().startsWith('plain')")
    assert result.data == "plain body"
    assert result.validation_result.is_valid


@pytest.mark.parametrize("endpoint", ["", "   "])
def test_missing_endpoint_never_sends_a_request(endpoint):
    api = FakeApi()
    result = run(api.context(), endpoint=endpoint)

    assert result.success is False
    assert result.outcome == "invalid_endpoint"
    assert result.message == "No endpoint URL specified"
    assert api.requests == []


def test_invalid_json_body_short_circuits():
    api = FakeApi()
    result = run(api.context(), method="POST", body="{invalid")

    assert result.success is False
    assert result.outcome == "body_parse_error"
    assert result.message.startswith("Invalid JSON in request body:")
    assert result.validation_result is None
    assert api.requests == []


def test_body_is_ignored_for_get_requests():
    api = FakeApi()
    result = run(api.context(), method="GET", body="{invalid")
    assert result.success is True
    assert api.requests[0].content == b""


def test_connection_failure_reports_no_response():
    api = FakeApi(error=httpx.ConnectError("connection refused"))
    result = run(api.context())

    assert result.success is False
    assert result.outcome == "no_response"
    assert "no response" in result.message
    assert result.validation_result is None
    assert result.response_status is None


def test_timeout_reports_no_response():
    api = FakeApi(error=httpx.ReadTimeout("timed out"))
    result = run(api.context())
    assert result.outcome == "no_response"


def test_setup_failure_reports_underlying_text():
    api = FakeApi(error=httpx.UnsupportedProtocol("Request URL has an unsupported protocol 'ftp://'."))
    result = run(api.context())

    assert result.success is False
    assert result.outcome == "setup_error"
    assert result.message == "Request URL has an unsupported protocol 'ftp://'."


def test_unknown_version_keeps_response_data():
    api = FakeApi()
    result = run(api.context(), version="9.9.9")

    assert result.success is False
    assert result.outcome == "unknown_version"
    assert result.message == "Unsupported version '9.9.9'"
    assert result.response_status == 200
    assert result.data == {"name": "Ada", "age": 36}
    assert result.validation_result is None


def test_compile_failure_keeps_response_data():
    api = FakeApi()
    result = run(api.context(), schema="z.object({ name: zz.string() })")

    assert result.success is False
    assert result.outcome == "compile_error"
    assert "zz is not defined" in result.message
    assert result.response_status == 200
    assert result.data == {"name": "Ada", "age": 36}


def test_missing_version_uses_configured_default():
    api = FakeApi()
    result = run(api.context(), version=None, schema="z.string().nanoid().or(z.any())")
    assert result.success is True


def test_identical_runs_are_structurally_equal():
    api = FakeApi(httpx.Response(200, json={"name": "Ada"}))
    ctx = api.context()
    first = run(ctx)
    second = run(ctx)
    assert first == second
    assert first.to_dict()["validationResult"] == second.to_dict()["validationResult"]


def test_post_body_is_sent_as_json_and_persisted():
    saved: list[str] = []
    api = FakeApi(httpx.Response(201, json={"name": "Ada", "age": 36}))
    ctx = api.context(save_request_body=saved.append)
    body = '{"name": "Ada", "age": 36}'

    result = run(ctx, method="post", body=body)

    assert result.success is True
    assert api.requests[0].method == "POST"
    assert json.loads(api.requests[0].content) == {"name": "Ada", "age": 36}
    assert saved == [body]


def test_async_persistence_callback_is_awaited():
    saved: list[str] = []

    async def save(body: str) -> None:
        saved.append(body)

    api = FakeApi()
    run(api.context(save_request_body=save), method="PUT", body="[1, 2]")
    assert saved == ["[1, 2]"]


def test_persistence_failure_does_not_change_result():
    def save(body: str) -> None:
        raise OSError("disk full")

    api = FakeApi()
    result = run(api.context(save_request_body=save), method="PATCH", body="{}")
    assert result.success is True
    assert result.message == "Schema test passed"


def test_default_headers_are_merged_under_call_headers():
    config = ProbeConfig.from_mapping(
        {"request": {"default_headers": {"X-Env": "test", "Accept": "text/plain"}}}
    )
    api = FakeApi()
    run(api.context(config), headers={"Accept": "application/json", "Authorization": "t"})

    sent = api.requests[0].headers
    assert sent["x-env"] == "test"
    assert sent["accept"] == "application/json"
    assert sent["authorization"] == "t"


def test_strict_policy_from_configuration():
    config = ProbeConfig.from_mapping({"validator": {"unknown_keys": "strict"}})
    api = FakeApi(httpx.Response(200, json={"name": "Ada", "age": 36, "extra": 1}))
    result = run(api.context(config))
    assert result.message == "Schema test failed: 1 error(s)"


def test_run_completed_hook_reports_outcome():
    events = []
    api = FakeApi()
    with hooks.register_hook(hooks.ORCHESTRATOR_RUN_COMPLETED, events.append):
        run(api.context(), endpoint="")
    assert [event.payload["outcome"] for event in events] == ["invalid_endpoint"]


def test_run_many_runs_entries_in_order():
    api = FakeApi()
    entries = [
        SchemaEntry(name="person", source=PERSON, endpoint=ENDPOINT),
        {"name": "orphan", "source": PERSON},
        {"name": "typed", "content": "z.array(z.string())", "endpoint_url": ENDPOINT},
    ]
    results = asyncio.run(orchestrator.run_many(entries, "3.24.2", api.context()))

    assert [item.name for item in results] == ["person", "orphan", "typed"]
    assert results[0].result.message == "Schema test passed"
    assert results[1].result.message == "No endpoint URL specified for this schema"
    assert results[2].result.message == "Schema test failed: 1 error(s)"
    assert all(request.method == "GET" for request in api.requests)
    assert len(api.requests) == 2


def test_explain_passes_result_through():
    answer = {"success": True, "suggestions": "Make age optional."}
    seen = []

    def explainer(source, errors, data):
        seen.append((source, errors, data))
        return answer

    result = asyncio.run(orchestrator.explain(explainer, PERSON, [], {"name": "Ada"}))
    assert result is answer
    assert seen == [(PERSON, [], {"name": "Ada"})]


def test_explain_failure_becomes_error_value():
    async def explainer(source, errors, data):
        raise RuntimeError("model unavailable")

    result = asyncio.run(orchestrator.explain(explainer, PERSON, [], None))
    assert result == {"success": False, "error": "model unavailable"}


def test_result_serialises_to_json():
    api = FakeApi()
    payload = run(api.context()).to_dict()
    assert payload["success"] is True
    assert payload["responseStatus"] == 200
    assert payload["validationResult"] == {"isValid": True, "errors": []}
    json.dumps(payload)


def test_redirect_loop_reports_no_response():
    def loop(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"Location": ENDPOINT})

    api = FakeApi()
    api.handler = loop  # type: ignore[method-assign]
    result = run(api.context())

    assert result.success is False
    assert result.outcome == "no_response"
    assert result.message == "API request failed: no response received from server"
    assert result.validation_result is None


def test_deeply_nested_json_response_falls_back_to_text():
    text = "[" * 100_000 + "]" * 100_000
    api = FakeApi(httpx.Response(200, text=text))
    result = run(api.context(), schema="z.string()")
    assert result.outcome == "validated"
    assert result.data == text


def test_deeply_nested_request_body_is_a_parse_error():
    api = FakeApi()
    result = run(api.context(), method="POST", body="[" * 100_000 + "]" * 100_000)
    assert result.outcome == "body_parse_error"
    assert api.requests == []


@pytest.mark.parametrize(
    ("endpoint", "body"),
    [("", '{"name": "Ada"}'), (ENDPOINT, "   \n"), (ENDPOINT, "{invalid")],
)
def test_body_is_not_persisted_when_it_was_never_used(endpoint, body):
    saved: list[str] = []
    api = FakeApi()
    run(api.context(save_request_body=saved.append), endpoint=endpoint, method="POST", body=body)
    assert saved == []

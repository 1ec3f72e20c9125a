"""Command-line interface smoke tests (no network access)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from schemaprobe.orchestrator import cli

OFFLINE = ["--set", "resolver.declarations.enabled=False"]


def _output(capsys) -> object:
    return json.loads(capsys.readouterr().out)


def test_versions_lists_default(capsys):
    assert cli.main(["versions"]) == 0
    listing = _output(capsys)
    assert [entry["version"] for entry in listing] == ["3.24.2", "3.22.0", "3.20.0", "3.18.0"]
    assert listing[0]["default"] is True
    assert "vocabulary" not in listing[0]


def test_versions_vocabulary(capsys):
    assert cli.main(["versions", "--vocabulary"]) == 0
    listing = _output(capsys)
    assert "string" in listing[0]["vocabulary"]["constructors"]


def test_compile_reports_success(capsys):
    assert cli.main([*OFFLINE, "compile", "--source", "z.array(z.string())"]) == 0
    assert _output(capsys) == {"compiled": True, "version": "3.24.2", "kind": "array"}


def test_compile_reports_structured_error(capsys):
    assert cli.main([*OFFLINE, "compile", "--source", "z.strin()"]) == 1
    payload = _output(capsys)
    assert payload["compiled"] is False
    assert payload["error"]["kind"] == "RuntimeReference"


def test_compile_unknown_version(capsys):
    code = cli.main([*OFFLINE, "compile", "--source", "z.string()", "--version", "1.0.0"])
    assert code == 1
    assert _output(capsys)["error"]["kind"] == "UnknownVersion"


def test_check_validates_local_document(tmp_path: Path, capsys):
    schema = tmp_path / "schema.ts"
    schema.write_text("z.object({ a: z.number() })", encoding="utf-8")
    data = tmp_path / "data.json"
    data.write_text('{"a": "x"}', encoding="utf-8")

    assert cli.main([*OFFLINE, "check", "--schema", str(schema), str(data)]) == 1
    assert _output(capsys) == {
        "isValid": False,
        "errors": [{"path": ["a"], "message": "Expected number, received string"}],
    }


def test_errors_are_printed_with_prefix(tmp_path: Path, capsys):
    code = cli.main([*OFFLINE, "check", "--source", "z.any()", str(tmp_path / "missing.json")])
    assert code == 1
    assert capsys.readouterr().err.startswith("[schemaprobe] error:")


def test_parse_overrides_builds_nested_mapping():
    overrides = cli._parse_overrides(["request.timeout=5", "request.follow_redirects=False", "x=y"])
    assert overrides == {"request": {"timeout": 5, "follow_redirects": False}, "x": "y"}


def test_parse_overrides_requires_equals():
    with pytest.raises(ValueError):
        cli._parse_overrides(["request.timeout"])


def test_parse_headers():
    assert cli._parse_headers(["Authorization: Bearer t", "X-A:1"]) == {
        "Authorization": "Bearer t",
        "X-A": "1",
    }
    with pytest.raises(ValueError):
        cli._parse_headers(["broken"])


def test_sample_prints_valid_data(capsys):
    source = "z.object({ id: z.number().int(), tags: z.array(z.string()).length(2) })"
    assert cli.main([*OFFLINE, "sample", "--source", source, "--seed", "3"]) == 0
    payload = _output(capsys)
    assert payload["success"] is True
    assert isinstance(payload["data"]["id"], int)
    assert len(payload["data"]["tags"]) == 2


def test_sample_count_and_failure_exit_code(capsys):
    code = cli.main([*OFFLINE, "sample", "--source", "z.string().regex(/^\\d{30}$/)", "--count", "2"])
    assert code == 1
    payload = _output(capsys)
    assert payload["success"] is False
    assert len(payload["data"]) == 2
    assert payload["errors"][0]["path"] == [0]

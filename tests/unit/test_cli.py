from __future__ import annotations

import json
import re

import pytest
from typer.testing import CliRunner

from defi_event_generator import main as cli
from defi_event_generator.config import PLACEHOLDER_PRIVATE_KEY, Settings
from tests.conftest import TEST_PRIVATE_KEY, FakeStore

runner = CliRunner()


@pytest.fixture
def cli_env(monkeypatch, test_settings):
    """
    Point the CLI at test settings and a fake store, and capture the summary.
    """
    state = {"settings": test_settings, "store": FakeStore(), "built": 0, "summaries": []}

    def _build_store(settings, private_key):
        state["built"] += 1
        assert private_key == TEST_PRIVATE_KEY
        return state["store"]

    monkeypatch.setattr(cli, "get_settings", lambda: state["settings"])
    monkeypatch.setattr(cli, "build_store", _build_store)
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)
    monkeypatch.setattr(cli, "print_summary", lambda summary: state["summaries"].append(summary))
    return state


def _no_sampler(*args, **kwargs):
    raise AssertionError("sampler must not be built without a credential")


@pytest.mark.parametrize("key", ["", "   ", PLACEHOLDER_PRIVATE_KEY])
def test_run_refuses_without_credential(cli_env, monkeypatch, key):
    cli_env["settings"] = Settings(_env_file=None, private_key=key)
    monkeypatch.setattr(cli, "EventSampler", _no_sampler)

    result = runner.invoke(cli.app, ["run", "5", "0"])

    assert result.exit_code == 1
    assert "PRIVATE_KEY" in result.output
    assert cli_env["built"] == 0
    assert cli_env["store"].calls == []


def test_run_pushes_records_and_survives_failures(cli_env):
    cli_env["store"] = FakeStore(fail_on={3})

    result = runner.invoke(cli.app, ["run", "5", "0"])

    assert result.exit_code == 0, result.output
    assert "Generating 5 record(s) from preset 'aave' with 0ms delay" in result.output
    assert len(cli_env["store"].calls) == 5
    (summary,) = cli_env["summaries"]
    assert summary.emitted == 4
    assert summary.requested == 5


def test_run_passes_ttl_from_settings(cli_env):
    cli_env["settings"] = cli_env["settings"].model_copy(update={"entity_ttl_blocks": 42})

    result = runner.invoke(cli.app, ["run", "2", "0", "--seed", "1"])

    assert result.exit_code == 0, result.output
    assert {call["expires_in"] for call in cli_env["store"].calls} == {42}


def test_run_with_multi_preset(cli_env):
    result = runner.invoke(cli.app, ["run", "3", "0", "--preset", "multi", "--seed", "9"])

    assert result.exit_code == 0, result.output
    (summary,) = cli_env["summaries"]
    assert summary.catalog == "multi"
    assert summary.emitted == 3


def test_run_rejects_unknown_preset(cli_env):
    result = runner.invoke(cli.app, ["run", "3", "0", "--preset", "compound"])

    assert result.exit_code != 0
    assert cli_env["built"] == 0


def test_sample_needs_no_credential(cli_env):
    cli_env["settings"] = Settings(_env_file=None, private_key="")

    result = runner.invoke(cli.app, ["sample", "--seed", "1", "--json", "3"])

    assert result.exit_code == 0, result.output
    lines = [line for line in result.output.splitlines() if line.strip()]
    assert len(lines) == 3
    for line in lines:
        assert json.loads(line)["entityType"] == "protocol_event"
    assert cli_env["built"] == 0


def test_hello_writes_and_reads_back_greeting(cli_env):
    result = runner.invoke(cli.app, ["hello", "--wait", "0"])

    assert result.exit_code == 0, result.output
    assert "Entity created successfully!" in result.output
    (call,) = cli_env["store"].calls
    assert call["content_type"] == "text/plain"
    assert call["expires_in"] == cli.HELLO_TTL_BLOCKS == 1000
    assert call["payload"] == b"Hello World from Arkiv!"
    assert [a.key for a in call["attributes"]] == ["type", "message", "timestamp"]
    assert "Found 1 greeting entity(ies)" in result.output
    assert "Content: Hello World from Arkiv!" in result.output
    assert "message: hello-world" in result.output


def test_hello_timestamp_matches_record_format(cli_env):
    result = runner.invoke(cli.app, ["hello", "--wait", "0"])

    assert result.exit_code == 0, result.output
    timestamp = dict(cli_env["store"].calls[0]["attributes"])["timestamp"]
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", timestamp)


@pytest.mark.parametrize(
    "store",
    [FakeStore(fail_on={1}), FakeStore(fail_queries=True)],
    ids=["write-fails", "query-fails"],
)
def test_hello_reports_store_errors(cli_env, store):
    cli_env["store"] = store

    result = runner.invoke(cli.app, ["hello", "--wait", "0"])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "unavailable" in result.output
    assert not isinstance(result.exception, ConnectionError)


def test_info_masks_the_key(cli_env):
    result = runner.invoke(cli.app, ["info"])

    assert result.exit_code == 0, result.output
    assert TEST_PRIVATE_KEY not in result.output
    assert "0xabab...abab" in result.output
    assert "preset aave: count=50 delay=3000ms" in result.output


def test_catalogs_lists_both(cli_env):
    result = runner.invoke(cli.app, ["catalogs"])

    assert result.exit_code == 0, result.output
    assert "aave" in result.output
    assert "multi" in result.output

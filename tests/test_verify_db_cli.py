"""Tests for the standalone verification CLI and its exit codes."""

import orjson
import pytest

from backend.database.gate import GateOutcome
from backend.database.schema import DEFAULT_REGISTRY
from backend.database.verify import GateState, VerificationResult
from backend.scripts import verify_db


def _degraded() -> GateOutcome:
    names = [d.name for d in DEFAULT_REGISTRY.required_tables()]
    optional = tuple(d.name for d in DEFAULT_REGISTRY.optional_tables())
    result = VerificationResult(
        existing=frozenset(names + list(optional[1:])),
        missing_required=(),
        missing_optional=optional[:1],
    )
    return GateOutcome(state=GateState.DEGRADED, result=result)


@pytest.fixture
def gate_calls(monkeypatch):
    """Replace the real gate with one returning a preset outcome."""
    calls = {"outcome": _degraded(), "settings": [], "timeouts": []}

    async def fake_gate(manager, registry, settings=None, timeout=None):
        calls["settings"].append(settings)
        calls["timeouts"].append(timeout)
        return calls["outcome"]

    monkeypatch.setattr(verify_db, "run_startup_gate", fake_gate)
    return calls


def test_degraded_exits_zero_with_text_report(gate_calls, capsys):
    assert verify_db.main([]) == 0
    assert "Missing Optional Tables" in capsys.readouterr().err


def test_json_output(gate_calls, capsys):
    assert verify_db.main(["--json"]) == 0

    data = orjson.loads(capsys.readouterr().out)
    assert data["state"] == "degraded"
    assert data["verification"]["missing_optional"] == ["message_threads"]


def test_connection_failure_exits_one(gate_calls, capsys):
    gate_calls["outcome"] = GateOutcome(
        state=GateState.FAILED, reason="connection", error="Failed to connect to PostgreSQL"
    )

    assert verify_db.main([]) == 1
    assert "Failed to connect to PostgreSQL" in capsys.readouterr().err


def test_missing_required_exits_one(gate_calls):
    result = VerificationResult(
        existing=frozenset({"users"}),
        missing_required=("sessions",),
        missing_optional=(),
    )
    gate_calls["outcome"] = GateOutcome(state=GateState.FAILED, result=result, reason="schema")

    assert verify_db.main([]) == 1


def test_show_ddl_prints_only_missing_tables(gate_calls, capsys):
    assert verify_db.main(["--show-ddl"]) == 0

    out = capsys.readouterr().out
    assert "CREATE TABLE IF NOT EXISTS message_threads" in out
    assert "CREATE TABLE IF NOT EXISTS users" not in out


def test_overrides_are_passed_to_gate(gate_calls):
    verify_db.main(["--database-url", "postgres://ops@db:5432/yektayar", "--timeout", "3"])

    assert gate_calls["settings"][0].database_url == "postgresql+asyncpg://ops@db:5432/yektayar"
    assert gate_calls["timeouts"] == [3.0]


@pytest.mark.parametrize("argv", [["--timeout", "0"], ["--timeout", "soon"], ["--unknown"]])
def test_invalid_arguments_exit_two(argv):
    with pytest.raises(SystemExit) as exc_info:
        verify_db.main(argv)
    assert exc_info.value.code == 2

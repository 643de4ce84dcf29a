"""Tests for the verification reporter."""

import io

from loguru import logger

from backend.database.report import build_report, print_report, render_report
from backend.database.verify import CheckError, GateState, VerificationResult


def _result(existing=(), missing_required=(), missing_optional=(), check_errors=()):
    return VerificationResult(
        existing=frozenset(existing),
        missing_required=tuple(missing_required),
        missing_optional=tuple(missing_optional),
        check_errors=tuple(check_errors),
    )


class BrokenStream:
    """Stream whose first write fails, to exercise the fallback line."""

    def __init__(self):
        self.writes = []
        self.failed = False

    def write(self, text):
        if not self.failed:
            self.failed = True
            raise OSError("stderr is closed")
        self.writes.append(text)

    def flush(self):
        pass


class TestBuildReport:
    def test_sections_in_fixed_order(self, small_registry):
        report = build_report(_result({"users"}, ["sessions"], ["roles"]), small_registry)

        assert [s.title for s in report.sections] == [
            "Existing Tables",
            "Missing Required Tables",
            "Missing Optional Tables",
        ]
        assert [s.severity for s in report.sections] == ["info", "critical", "advisory"]
        assert report.state is GateState.FAILED
        assert report.sections[0].count == 1

    def test_existing_tables_follow_registry_order(self, small_registry):
        report = build_report(_result({"roles", "sessions", "users"}), small_registry)
        assert [line.table for line in report.sections[0].lines] == ["users", "sessions", "roles"]
        assert report.headline.startswith("✅ All 2 required tables exist")
        assert "(3/3 total tables found)" in report.headline

    def test_optional_absence_is_advisory(self, small_registry):
        report = build_report(_result({"users", "sessions"}, [], ["roles"]), small_registry)

        assert report.state is GateState.DEGRADED
        advisory = report.sections[2]
        assert advisory.severity == "advisory"
        assert [line.table for line in advisory.lines] == ["roles"]
        assert report.sections[1].lines == []

    def test_unverified_tables_are_not_reported_as_absent(self, small_registry):
        result = _result(
            {"users"},
            ["sessions"],
            [],
            [CheckError(table="sessions", error="Query failed: timeout")],
        )
        report = build_report(result, small_registry)

        line = report.sections[1].lines[0]
        assert line.unverified is True
        assert "Could not verify 1 required table(s): sessions" in report.headline
        assert "Missing" not in report.headline

    def test_build_report_is_pure(self, small_registry):
        result = _result({"users"}, ["sessions"], ["roles"])
        assert build_report(result, small_registry) == build_report(result, small_registry)


class TestRenderAndPrint:
    def test_render_includes_descriptions_and_notes(self, small_registry):
        text = render_report(build_report(_result({"users"}, ["sessions"], ["roles"]), small_registry))

        assert "DATABASE TABLE VERIFICATION REPORT" in text
        assert "   - sessions (sessions table)" in text
        assert "WARNING: The application cannot start without these tables!" in text
        assert "some features may be unavailable" in text
        assert text.index("Missing Required Tables") < text.index("Missing Optional Tables")

    def test_render_marks_unverified_tables(self, small_registry):
        result = _result({"users", "sessions"}, [], ["roles"], [CheckError("roles", "Query failed: boom")])
        text = render_report(build_report(result, small_registry))
        assert "roles (roles table) [could not be verified: Query failed: boom]" in text

    def test_render_skips_empty_sections(self, small_registry):
        text = render_report(build_report(_result({"users", "sessions", "roles"}), small_registry))
        assert "Missing Required Tables" not in text
        assert "Gate state: READY" in text

    def test_print_report_writes_to_stream(self, small_registry):
        stream = io.StringIO()
        print_report(_result({"users", "sessions"}, [], ["roles"]), small_registry, stream=stream)
        output = stream.getvalue()
        assert "Missing Optional Tables (1) [advisory]" in output
        assert "Gate state: DEGRADED" in output

    def test_print_report_defaults_to_stderr(self, small_registry, capsys):
        print_report(_result({"users"}, ["sessions"], ["roles"]), small_registry)
        captured = capsys.readouterr()
        assert "DATABASE TABLE VERIFICATION REPORT" in captured.err
        assert captured.out == ""

    def test_print_report_never_raises(self, small_registry):
        stream = BrokenStream()
        print_report(_result({"users"}, ["sessions"], []), small_registry, stream=stream)
        assert stream.writes == ["Database verification: state=failed missing_required=['sessions']\n"]

    def test_print_report_logs_failed_as_error(self, small_registry):
        messages = []
        logger.add(messages.append, format="{level} {message}")

        print_report(_result({"users"}, ["sessions"], []), small_registry, stream=io.StringIO())

        assert any(m.startswith("ERROR Database gate FAILED") and "sessions" in m for m in messages)

    def test_print_report_logs_degraded_as_warning(self, small_registry):
        messages = []
        logger.add(messages.append, format="{level} {message}")

        print_report(_result({"users", "sessions"}, [], ["roles"]), small_registry, stream=io.StringIO())

        assert any(m.startswith("WARNING Database gate DEGRADED") and "roles" in m for m in messages)
        assert not any(m.startswith("ERROR") for m in messages)

    def test_print_report_is_quiet_when_ready(self, small_registry):
        messages = []
        logger.add(messages.append, format="{level} {message}", level="WARNING")

        print_report(_result({"users", "sessions", "roles"}), small_registry, stream=io.StringIO())

        assert messages == []

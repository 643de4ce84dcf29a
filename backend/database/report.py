"""Operator-facing rendering of a VerificationResult.

``build_report`` and ``render_report`` are pure. ``print_report`` writes to
stderr and never raises; on failure it falls back to a single summary line.
"""

import sys
from dataclasses import dataclass, field
from typing import List, Optional, TextIO

from backend.database.schema import DEFAULT_REGISTRY, SchemaRegistry
from backend.database.verify import GateState, VerificationResult
from backend.logging_config import get_logger

logger = get_logger(name=__name__)

BANNER_WIDTH = 60


@dataclass(frozen=True)
class ReportLine:
    table: str
    description: str = ""
    error: Optional[str] = None

    @property
    def unverified(self) -> bool:
        return self.error is not None


@dataclass
class ReportSection:
    title: str
    severity: str  # "info", "critical" or "advisory"
    lines: List[ReportLine] = field(default_factory=list)
    note: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.lines)


@dataclass
class VerificationReport:
    headline: str
    state: GateState
    sections: List[ReportSection] = field(default_factory=list)


def _line(registry: SchemaRegistry, result: VerificationResult, name: str) -> ReportLine:
    definition = registry.get(name)
    return ReportLine(
        table=name,
        description=definition.description if definition else "",
        error=result.error_for(name),
    )


def _headline(result: VerificationResult, registry: SchemaRegistry) -> str:
    required_count = len(registry.required_tables())
    if not result.ok:
        absent = [n for n in result.missing_required if result.error_for(n) is None]
        unverified = [n for n in result.missing_required if result.error_for(n) is not None]
        parts = []
        if absent:
            parts.append(f"Missing {len(absent)} required table(s): {', '.join(absent)}")
        if unverified:
            parts.append(
                f"Could not verify {len(unverified)} required table(s): {', '.join(unverified)}"
            )
        return "❌ " + "; ".join(parts)

    headline = f"✅ All {required_count} required tables exist"
    if len(result.existing) > required_count:
        headline += f" ({len(result.existing)}/{len(registry)} total tables found)"
    return headline


def build_report(
    result: VerificationResult, registry: SchemaRegistry = DEFAULT_REGISTRY
) -> VerificationReport:
    """Build the three-section report: found, missing required, missing optional."""
    found = ReportSection(
        title="Existing Tables",
        severity="info",
        lines=[_line(registry, result, d.name) for d in registry.all_tables() if d.name in result.existing],
    )
    missing_required = ReportSection(
        title="Missing Required Tables",
        severity="critical",
        lines=[_line(registry, result, n) for n in result.missing_required],
        note="WARNING: The application cannot start without these tables!",
    )
    missing_optional = ReportSection(
        title="Missing Optional Tables",
        severity="advisory",
        lines=[_line(registry, result, n) for n in result.missing_optional],
        note="Note: These tables are optional but some features may be unavailable.",
    )
    return VerificationReport(
        headline=_headline(result, registry),
        state=result.state,
        sections=[found, missing_required, missing_optional],
    )


_SECTION_MARKERS = {"info": "✅", "critical": "❌", "advisory": "⚠️ "}


def render_report(report: VerificationReport) -> str:
    """Render a report as plain text, skipping empty sections."""
    rule = "=" * BANNER_WIDTH
    out = [
        "",
        rule,
        "📊 DATABASE TABLE VERIFICATION REPORT",
        rule,
        "",
        report.headline,
        f"Gate state: {report.state.value.upper()}",
    ]
    for section in report.sections:
        if not section.lines:
            continue
        marker = _SECTION_MARKERS.get(section.severity, "-")
        out.append("")
        out.append(f"{marker} {section.title} ({section.count}) [{section.severity}]:")
        for line in section.lines:
            text = f"   - {line.table}"
            if line.description:
                text += f" ({line.description})"
            if line.unverified:
                text += f" [could not be verified: {line.error}]"
            out.append(text)
        if section.note:
            out.append("")
            out.append(section.note)
    out.append("")
    out.append(rule)
    out.append("")
    return "\n".join(out)


def print_report(
    result: VerificationResult,
    registry: SchemaRegistry = DEFAULT_REGISTRY,
    stream: Optional[TextIO] = None,
) -> None:
    """Write the report to stderr (or ``stream``). Never raises."""
    stream = stream or sys.stderr
    try:
        if result.state is GateState.FAILED:
            logger.error("Database gate FAILED: missing required tables {}", list(result.missing_required))
        elif result.state is GateState.DEGRADED:
            logger.warning("Database gate DEGRADED: missing optional tables {}", list(result.missing_optional))
        stream.write(render_report(build_report(result, registry)) + "\n")
        stream.flush()
    except Exception as e:
        logger.warning("Failed to render verification report: {}", e)
        try:
            stream.write(
                f"Database verification: state={result.state.value} "
                f"missing_required={list(result.missing_required)}\n"
            )
        except Exception as fallback_error:
            logger.error("Failed to write fallback verification line: {}", fallback_error)

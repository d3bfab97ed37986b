"""Report formatter — renders analysis results as markdown.

Pure functions for turning Pareto results and report rows into markdown
tables and a sectioned report.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from superstore_brain.discovery.pareto_analysis import ParetoResult, quantize_rate, summarize_groups


@dataclass
class ReportSection:
    """A single section within a formatted report."""

    title: str
    content: str  # markdown content
    priority: int  # 1=highest, used for ordering
    section_type: str  # "summary", "table", "warning"


@dataclass
class FormattedReport:
    """A complete formatted markdown report."""

    title: str
    sections: list[ReportSection] = field(default_factory=list)
    generated_at: str = ""  # ISO timestamp
    markdown: str = ""  # full rendered markdown
    word_count: int = 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def format_number(value: float | int | Decimal) -> str:
    """Thousands-separated, two decimals for non-integers: 1234567.5 -> 1,234,567.50."""
    if isinstance(value, Decimal):
        value = quantize_rate(value)
        return f"{value:,.0f}" if value == value.to_integral_value() else f"{value:,.2f}"
    if isinstance(value, float) and not value.is_integer():
        return f"{value:,.2f}"
    return f"{int(value):,}"


def _count_words(text: str) -> int:
    """Count words in text, excluding markdown syntax characters."""
    cleaned = re.sub(r"[#*_|`>\[\]()~\-]", " ", text)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    if not cleaned:
        return 0
    return len(cleaned.split())


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


def format_comparison_table(
    items: list[dict],
    columns: list[str],
    highlight_best: str | None = None,
) -> str:
    """Format a list of dicts as a markdown table.

    If *highlight_best* names a column, the row with the highest numeric
    value in that column has its cells wrapped in bold.
    """
    if not items or not columns:
        return ""

    best_idx: int | None = None
    if highlight_best and highlight_best in columns:
        best_val = None
        for i, item in enumerate(items):
            v = item.get(highlight_best)
            if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
                if best_val is None or v > best_val:
                    best_val = v
                    best_idx = i

    header = "| " + " | ".join(columns) + " |"
    separator = "| " + " | ".join("---" for _ in columns) + " |"

    rows: list[str] = []
    for i, item in enumerate(items):
        cells: list[str] = []
        for col in columns:
            raw = item.get(col, "")
            if isinstance(raw, (int, float, Decimal)) and not isinstance(raw, bool):
                cell = format_number(raw)
            else:
                cell = "" if raw is None else str(raw)
            if i == best_idx:
                cell = f"**{cell}**"
            cells.append(cell)
        rows.append("| " + " | ".join(cells) + " |")

    return "\n".join([header, separator] + rows)


def format_pareto_table(result: ParetoResult) -> str:
    """Entities within the threshold, one row each, in group then cumulative order."""
    items = [
        {
            "Group": e.group_id,
            "Rank": e.rank,
            "Entity": e.entity_id,
            "Sales": e.total_amount,
            "Group Sales": e.group_total,
            "Share %": quantize_rate(e.share),
            "Cumulative %": quantize_rate(e.cumulative_share),
        }
        for e in result.entities
    ]
    columns = ["Group", "Rank", "Entity", "Sales", "Group Sales", "Share %", "Cumulative %"]
    return format_comparison_table(items, columns)


def format_excluded_groups(result: ParetoResult) -> str:
    """Bullet list of groups left out of the analysis, or empty string."""
    return "\n".join(
        f"- {w.group_id}: {w.reason} (total {format_number(w.total_amount)})"
        for w in result.excluded_groups
    )


# ---------------------------------------------------------------------------
# Full report
# ---------------------------------------------------------------------------


def format_pareto_report(result: ParetoResult, title: str = "Pareto Analysis") -> FormattedReport:
    """Assemble summary, group roll-up, entity table and exclusions into one report."""
    sections: list[ReportSection] = [ReportSection(
        title="Summary",
        content=f"### Summary\n\n{result.summary}",
        priority=1,
        section_type="summary",
    )]

    groups = summarize_groups(result)
    if groups:
        table_md = format_comparison_table(
            groups,
            ["group_id", "total_amount", "entity_count", "vital_few_count", "vital_few_pct", "covered_share"],
        )
        sections.append(ReportSection(
            title="Groups",
            content=f"### Groups\n\n{table_md}",
            priority=2,
            section_type="table",
        ))

    if result.entities:
        sections.append(ReportSection(
            title="Entities",
            content=f"### Entities within {result.threshold}%\n\n{format_pareto_table(result)}",
            priority=3,
            section_type="table",
        ))

    if result.excluded_groups:
        sections.append(ReportSection(
            title="Excluded Groups",
            content=f"### Excluded Groups\n\n{format_excluded_groups(result)}",
            priority=4,
            section_type="warning",
        ))

    sections.sort(key=lambda s: s.priority)
    markdown = "\n\n".join([f"# {title}"] + [s.content for s in sections]) + "\n"

    return FormattedReport(
        title=title,
        sections=sections,
        generated_at=_now_iso(),
        markdown=markdown,
        word_count=_count_words(markdown),
    )

"""Pareto analysis — identify the entities that carry most of each group's sales.

Pure functions for the 80/20 cut: sum sales per (group, entity), take each
entity's share of its group total, accumulate shares in descending order
of contribution, and keep the prefix whose cumulative share stays within
the threshold.

Amounts and shares are ``Decimal``. The cumulative share of the n-th
ranked entity is computed from the running amount (``100 * running /
group_total``) rather than by adding rounded shares, so the last entity in
a group always lands on exactly 100.
"""

from __future__ import annotations

import logging
import numbers
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

logger = logging.getLogger(__name__)

EXCLUDE = "exclude"
RAISE = "raise"
EMPTY_GROUP_POLICIES = (EXCLUDE, RAISE)

_HUNDRED = Decimal(100)
_CENTS = Decimal("0.01")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ParetoError(Exception):
    """Base class for Pareto analysis failures."""


class InvalidThresholdError(ParetoError, ValueError):
    """Threshold is not a number in (0, 100]."""


class InvalidRecordError(ParetoError, ValueError):
    """A sales record carries an unusable amount."""


class EmptyGroupError(ParetoError):
    """A group's total is not positive, so shares cannot be computed."""

    def __init__(self, group_id: str, total_amount: Decimal):
        self.group_id = group_id
        self.total_amount = total_amount
        super().__init__(
            f"Group {group_id!r} has a non-positive total ({total_amount}); shares are undefined"
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_decimal(value: Any) -> Decimal | None:
    """Convert a numeric value to a finite Decimal, or None if that is impossible."""
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, numbers.Integral):
            result = Decimal(int(value))
        elif isinstance(value, numbers.Real):
            # via str() so 0.1 becomes Decimal("0.1"), not its binary expansion
            result = Decimal(str(float(value)))
        elif isinstance(value, str):
            result = Decimal(value.strip())
        else:
            return None
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def quantize_rate(value: Decimal) -> Decimal:
    """Round a share or amount to two places, as stored in DECIMAL(18,2) columns."""
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def validate_threshold(threshold: Any) -> Decimal:
    """Return *threshold* as a Decimal, raising InvalidThresholdError outside (0, 100]."""
    value = _to_decimal(threshold) if not isinstance(threshold, str) else None
    if value is None:
        raise InvalidThresholdError(f"Threshold must be a finite number, got {threshold!r}")
    if not (0 < value <= _HUNDRED):
        raise InvalidThresholdError(f"Threshold must be in (0, 100], got {threshold}")
    return value


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SalesRecord:
    """One input row: an entity's sale inside a group."""
    entity_id: str
    group_id: str
    amount: Decimal

    def __post_init__(self) -> None:
        amount = _to_decimal(self.amount)
        if amount is None:
            raise InvalidRecordError(f"Amount must be a finite number, got {self.amount!r}")
        if amount < 0:
            raise InvalidRecordError(f"Amount must be non-negative, got {amount}")
        object.__setattr__(self, "entity_id", str(self.entity_id))
        object.__setattr__(self, "group_id", str(self.group_id))
        object.__setattr__(self, "amount", amount)


@dataclass(frozen=True)
class EntityAggregate:
    """Summed amount for one (group, entity) pair."""
    group_id: str
    entity_id: str
    total_amount: Decimal


@dataclass(frozen=True)
class GroupTotal:
    group_id: str
    total_amount: Decimal
    entity_count: int


@dataclass(frozen=True)
class RankedEntity:
    """An aggregate with its share and running cumulative share inside its group."""
    group_id: str
    entity_id: str
    total_amount: Decimal
    group_total: Decimal
    share: Decimal  # % of group total
    cumulative_share: Decimal  # running % including this entity
    rank: int  # 1-based within the group


@dataclass(frozen=True)
class DataQualityWarning:
    """A group left out of the analysis, with the reason."""
    group_id: str
    total_amount: Decimal
    reason: str


@dataclass
class ParetoResult:
    """Complete Pareto analysis result."""
    threshold: Decimal
    entities: list[RankedEntity]  # within threshold, ordered by group then cumulative share
    ranked: list[RankedEntity]  # every ranked entity before the threshold cut
    group_totals: dict[str, GroupTotal]
    excluded_groups: list[DataQualityWarning] = field(default_factory=list)
    skipped_rows: int = 0
    summary: str = ""


# ---------------------------------------------------------------------------
# Pipeline steps
# ---------------------------------------------------------------------------


def aggregate_entities(records: Iterable[SalesRecord]) -> list[EntityAggregate]:
    """Sum amounts per (group, entity), ordered by group then entity."""
    sums: dict[tuple[str, str], Decimal] = {}
    for rec in records:
        key = (rec.group_id, rec.entity_id)
        sums[key] = sums.get(key, Decimal(0)) + rec.amount

    return [
        EntityAggregate(group_id=g, entity_id=e, total_amount=total)
        for (g, e), total in sorted(sums.items())
    ]


def compute_group_totals(aggregates: Iterable[EntityAggregate]) -> dict[str, GroupTotal]:
    """Sum entity totals per group."""
    totals: dict[str, Decimal] = {}
    counts: dict[str, int] = {}
    for agg in aggregates:
        totals[agg.group_id] = totals.get(agg.group_id, Decimal(0)) + agg.total_amount
        counts[agg.group_id] = counts.get(agg.group_id, 0) + 1

    return {
        g: GroupTotal(group_id=g, total_amount=totals[g], entity_count=counts[g])
        for g in sorted(totals)
    }


def rank_entities(
    aggregates: Iterable[EntityAggregate],
    group_totals: dict[str, GroupTotal],
) -> list[RankedEntity]:
    """Rank entities within each group and attach share and cumulative share.

    Entities are ordered by total amount descending; equal amounts are
    ordered by entity id ascending. The running total restarts at each group.

    Raises:
        EmptyGroupError: if any group reached here has a non-positive total.
    """
    by_group: dict[str, list[EntityAggregate]] = {}
    for agg in aggregates:
        by_group.setdefault(agg.group_id, []).append(agg)

    ranked: list[RankedEntity] = []
    for group_id in sorted(by_group):
        group_total = group_totals[group_id].total_amount
        if group_total <= 0:
            raise EmptyGroupError(group_id, group_total)

        members = sorted(by_group[group_id], key=lambda a: (-a.total_amount, a.entity_id))
        running = Decimal(0)
        for i, agg in enumerate(members):
            running += agg.total_amount
            ranked.append(RankedEntity(
                group_id=group_id,
                entity_id=agg.entity_id,
                total_amount=agg.total_amount,
                group_total=group_total,
                share=_HUNDRED * agg.total_amount / group_total,
                cumulative_share=_HUNDRED * running / group_total,
                rank=i + 1,
            ))
    return ranked


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class ParetoAnalyzer:
    """Run the Pareto cut over a batch of sales records.

    Args:
        threshold: Cumulative share cut-off in (0, 100]. Entities whose
            cumulative share exceeds it are dropped, even by a fraction.
        empty_group_policy: ``"exclude"`` reports groups with a non-positive
            total as DataQualityWarning and carries on; ``"raise"`` raises
            EmptyGroupError for the first such group.
    """

    def __init__(self, threshold: float | Decimal = 80, empty_group_policy: str = EXCLUDE):
        self.threshold = validate_threshold(threshold)
        if empty_group_policy not in EMPTY_GROUP_POLICIES:
            raise ValueError(
                f"Unknown empty_group_policy {empty_group_policy!r}; "
                f"expected one of {EMPTY_GROUP_POLICIES}"
            )
        self.empty_group_policy = empty_group_policy

    def analyze(self, records: Iterable[SalesRecord], skipped_rows: int = 0) -> ParetoResult:
        aggregates = aggregate_entities(records)
        group_totals = compute_group_totals(aggregates)

        excluded: list[DataQualityWarning] = []
        for gt in group_totals.values():
            if gt.total_amount > 0:
                continue
            if self.empty_group_policy == RAISE:
                raise EmptyGroupError(gt.group_id, gt.total_amount)
            logger.warning(
                "Excluding group %r from Pareto analysis: total %s is not positive",
                gt.group_id, gt.total_amount,
            )
            excluded.append(DataQualityWarning(
                group_id=gt.group_id,
                total_amount=gt.total_amount,
                reason="non-positive group total; shares are undefined",
            ))

        excluded_ids = {w.group_id for w in excluded}
        ranked = rank_entities(
            (a for a in aggregates if a.group_id not in excluded_ids),
            group_totals,
        )
        entities = [r for r in ranked if r.cumulative_share <= self.threshold]

        logger.info(
            "Pareto cut at %s%%: %d of %d entities kept across %d group(s), %d excluded",
            self.threshold, len(entities), len(ranked),
            len(group_totals) - len(excluded), len(excluded),
        )

        return ParetoResult(
            threshold=self.threshold,
            entities=entities,
            ranked=ranked,
            group_totals=group_totals,
            excluded_groups=excluded,
            skipped_rows=skipped_rows,
            summary=_build_summary(self.threshold, entities, ranked, group_totals, excluded),
        )


def pareto_analysis(
    records: Iterable[SalesRecord],
    threshold: float | Decimal = 80,
    empty_group_policy: str = EXCLUDE,
) -> ParetoResult:
    """Convenience wrapper around ``ParetoAnalyzer(...).analyze(records)``."""
    return ParetoAnalyzer(threshold, empty_group_policy).analyze(records)


def _build_summary(
    threshold: Decimal,
    entities: list[RankedEntity],
    ranked: list[RankedEntity],
    group_totals: dict[str, GroupTotal],
    excluded: list[DataQualityWarning],
) -> str:
    analysed = len(group_totals) - len(excluded)
    if not ranked:
        summary = f"No entities to rank at a {threshold}% threshold."
    else:
        pct = len(entities) / len(ranked) * 100
        summary = (
            f"{len(entities)} of {len(ranked)} entities ({pct:.0f}%) across "
            f"{analysed} group(s) account for up to {threshold}% of their group's sales."
        )
    if excluded:
        summary += f" {len(excluded)} group(s) excluded for non-positive totals."
    return summary


# ---------------------------------------------------------------------------
# Row adaptation and follow-up summaries
# ---------------------------------------------------------------------------


def records_from_rows(
    rows: Iterable[dict],
    entity_column: str,
    group_column: str,
    amount_column: str,
) -> tuple[list[SalesRecord], int]:
    """Build SalesRecords from dict rows.

    Rows with a missing entity, group or amount, or with a negative or
    non-numeric amount, are skipped.

    Returns:
        (records, skipped_row_count)
    """
    records: list[SalesRecord] = []
    skipped = 0
    for row in rows:
        entity = row.get(entity_column)
        group = row.get(group_column)
        amount = row.get(amount_column)
        if entity is None or group is None or amount is None:
            skipped += 1
            continue
        try:
            records.append(SalesRecord(entity_id=entity, group_id=group, amount=amount))
        except InvalidRecordError as exc:
            logger.debug("Skipping row for %r/%r: %s", group, entity, exc)
            skipped += 1

    if skipped:
        logger.info("Skipped %d unusable row(s) while building sales records", skipped)
    return records, skipped


def summarize_groups(result: ParetoResult) -> list[dict]:
    """Per-group roll-up: how many entities it takes to reach the threshold."""
    vital: dict[str, list[RankedEntity]] = {}
    for ent in result.entities:
        vital.setdefault(ent.group_id, []).append(ent)

    ranked_groups = sorted({r.group_id for r in result.ranked})
    summaries = []
    for group_id in ranked_groups:
        gt = result.group_totals[group_id]
        kept = vital.get(group_id, [])
        covered = kept[-1].cumulative_share if kept else Decimal(0)
        summaries.append({
            "group_id": group_id,
            "total_amount": float(quantize_rate(gt.total_amount)),
            "entity_count": gt.entity_count,
            "vital_few_count": len(kept),
            "vital_few_pct": round(len(kept) / gt.entity_count * 100, 1),
            "covered_share": float(quantize_rate(covered)),
        })
    return summaries


def find_concentration_risk(result: ParetoResult, risk_threshold: float = 50.0) -> list[dict]:
    """Find entities that alone hold at least *risk_threshold*% of their group."""
    limit = validate_threshold(risk_threshold)
    risks = []
    for ent in result.ranked:
        if ent.share >= limit:
            share = float(quantize_rate(ent.share))
            risks.append({
                "group_id": ent.group_id,
                "entity_id": ent.entity_id,
                "share": share,
                "risk_level": "high" if share >= 70 else "medium",
                "message": f"{ent.entity_id} alone accounts for {share:.1f}% of {ent.group_id}.",
            })
    return risks

"""Print a markdown Pareto report straight from a Global Superstore CSV."""

import argparse
import logging
import sys
from pathlib import Path

from config.settings import settings
from superstore_brain.discovery.pareto_analysis import ParetoAnalyzer, ParetoError, records_from_rows
from superstore_brain.discovery.report_formatter import format_pareto_report
from superstore_brain.ingestion.superstore_loader import load_superstore_csv, select_rows


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("csv", nargs="?", default=settings.superstore_csv, type=Path)
    parser.add_argument("--country")
    parser.add_argument("--city", default="New York City")
    parser.add_argument("--segment")
    parser.add_argument("--group-by", default="city", help="column whose values partition the ranking")
    parser.add_argument("--entity", default="customer_name", help="column identifying ranked entities")
    parser.add_argument("--amount", default="sales")
    parser.add_argument("--threshold", type=float, default=settings.pareto_threshold)
    parser.add_argument("--policy", choices=["exclude", "raise"], default=settings.empty_group_policy)
    parser.add_argument("--dayfirst", action="store_true")
    parser.add_argument("--date-format", help="strftime layout of the date columns, e.g. %%d-%%m-%%Y")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        analyzer = ParetoAnalyzer(threshold=args.threshold, empty_group_policy=args.policy)
        df = load_superstore_csv(args.csv, dayfirst=args.dayfirst, date_format=args.date_format)
        rows = select_rows(df, country=args.country, city=args.city, segment=args.segment)
        records, skipped = records_from_rows(rows, args.entity, args.group_by, args.amount)
        result = analyzer.analyze(records, skipped_rows=skipped)
    except (ParetoError, ValueError) as exc:
        print(f"[pareto_report] {exc}", file=sys.stderr)
        return 2

    scope = args.city or args.country or "all rows"
    print(format_pareto_report(result, title=f"Pareto Analysis: {args.entity} by {args.group_by} ({scope})").markdown)
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
scorelab CLI - argument parsing and dispatch.

Commands:
- run:   the whole sampling / modeling / in-database scoring workbook
- seed:  create the demo airport / flight / carrier tables
- sql:   print the SQL expression stored in a parsed model CSV
- score: score a table with a parsed model CSV and report accuracy
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

import duckdb

from scorelab.config import configure_logging, settings

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scorelab",
        description="Database sampling and in-database linear model scoring.",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help=f"Logging level (default: {settings.log_level}).",
    )

    subparsers = parser.add_subparsers(dest="command")

    def add_warehouse(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--warehouse",
            metavar="PATH",
            default=settings.warehouse_path,
            help=f"DuckDB database file, or :memory: (default: {settings.warehouse_path}).",
        )

    # run
    run_parser = subparsers.add_parser(
        "run",
        help="Run the sampling and scoring workbook end to end.",
        description=(
            "Connect, sample, fit a linear model, translate it to SQL,\n"
            "write the parsed model CSV, score inside the database, disconnect."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_warehouse(run_parser)
    run_parser.add_argument("--table", default="flight", help="Table to sample and score (default: flight).")
    run_parser.add_argument("--response", default="arrdelay", help="Response column (default: arrdelay).")
    run_parser.add_argument(
        "--predictors",
        nargs="+",
        metavar="COL",
        default=["month", "dayofmonth", "depdelay", "distance"],
        help="Predictor columns.",
    )
    run_parser.add_argument("--categorical", nargs="*", metavar="COL", default=[], help="Predictors to treat as categorical.")
    run_parser.add_argument("--sample-size", type=int, default=1000, help="Rows in the modeling sample (default: 1000).")
    run_parser.add_argument("--percent", type=float, default=1.0, help="TABLESAMPLE percent (default: 1).")
    run_parser.add_argument("--seed", type=int, default=settings.sample_seed, help="Sampling seed.")
    run_parser.add_argument("--threshold", type=float, default=settings.accuracy_threshold, help="Accuracy threshold.")
    run_parser.add_argument(
        "--output",
        metavar="PATH",
        default=settings.parsed_model_path,
        help=f"Parsed model CSV (default: {settings.parsed_model_path}).",
    )
    run_parser.add_argument("--rows", type=int, default=settings.demo_flight_rows, help="Demo flights to generate when seeding.")
    run_parser.add_argument("--no-seed", action="store_true", help="Do not create the demo schema.")
    run_parser.add_argument("--json", action="store_true", help="Print the report as JSON.")

    # seed
    seed_parser = subparsers.add_parser("seed", help="Create the demo airport / flight / carrier tables.")
    add_warehouse(seed_parser)
    seed_parser.add_argument("--rows", type=int, default=settings.demo_flight_rows, help="Number of flights.")
    seed_parser.add_argument("--seed", type=int, default=settings.demo_seed, help="Generator seed.")

    # sql
    sql_parser = subparsers.add_parser("sql", help="Print the SQL expression of a parsed model CSV.")
    sql_parser.add_argument("parsed", metavar="CSV", help="Parsed model CSV.")
    sql_parser.add_argument("--alias", default=None, help="Qualify columns with this table alias.")

    # score
    score_parser = subparsers.add_parser("score", help="Score a table with a parsed model CSV.")
    add_warehouse(score_parser)
    score_parser.add_argument("parsed", metavar="CSV", help="Parsed model CSV.")
    score_parser.add_argument("--table", default="flight", help="Table to score (default: flight).")
    score_parser.add_argument("--threshold", type=float, default=settings.accuracy_threshold, help="Accuracy threshold.")
    score_parser.add_argument("--into", metavar="TABLE", default=None, help="Persist scored rows into this table.")

    return parser


def _print_report(report) -> None:
    print("Table rows:")
    for name, n in report.table_rows.items():
        print(f"  {name}: {n}")
    print("Sample rows:")
    for name, n in report.sample_rows.items():
        print(f"  {name}: {n}")
    print(f"Model: n={report.model['n']} r2={report.model['r2']:.4f}")
    for label, value in report.model["params"].items():
        print(f"  {label}: {value:.6f}")
    print("SQL:")
    print(f"  {report.sql}")
    print(f"Parsed model written to {report.parsed_model_path}")
    acc = report.accuracy
    print(
        f"Accuracy: {acc['accurate']}/{acc['n']} ({acc['accuracy']:.2%}) within {acc['threshold']:g}; "
        f"MAE={acc['mae']:.3f} RMSE={acc['rmse']:.3f}"
    )
    check = report.translation_check
    status = "OK" if check["passed"] else "MISMATCH"
    print(f"Translation check: {status} (max diff {check['max_abs_diff']:.3g} over {check['rows']} rows)")


def cmd_run(args: argparse.Namespace) -> int:
    from scorelab.engine.warehouse import Warehouse
    from scorelab.services.workbook import WorkbookOptions, run_workbook

    options = WorkbookOptions(
        table=args.table,
        response=args.response,
        predictors=args.predictors,
        categorical=args.categorical,
        sample_size=args.sample_size,
        tablesample_percent=args.percent,
        seed=args.seed,
        threshold=args.threshold,
        parsed_model_path=args.output,
        seed_demo_data=not args.no_seed,
        demo_flight_rows=args.rows,
    )
    with Warehouse(args.warehouse) as wh:
        report = run_workbook(wh, options)

    if args.json:
        print(report.model_dump_json(indent=2))
    else:
        _print_report(report)
    return 0


def cmd_seed(args: argparse.Namespace) -> int:
    from scorelab.engine.demo_data import seed_flight_schema
    from scorelab.engine.warehouse import Warehouse

    with Warehouse(args.warehouse) as wh:
        seed_flight_schema(wh, args.rows, args.seed)
        counts = {t: wh.row_count(t) for t in ("airport", "carrier", "flight")}
    for name, n in counts.items():
        print(f"{name}: {n}")
    return 0


def cmd_sql(args: argparse.Namespace) -> int:
    from scorelab.services.translation import read_parsed_model, to_sql

    print(to_sql(read_parsed_model(args.parsed), table_alias=args.alias))
    return 0


def cmd_score(args: argparse.Namespace) -> int:
    from scorelab.engine.warehouse import Warehouse
    from scorelab.services.scoring import accuracy, score_into_table
    from scorelab.services.translation import read_parsed_model

    parsed = read_parsed_model(args.parsed)
    with Warehouse(args.warehouse) as wh:
        if args.into:
            n = score_into_table(wh, args.table, args.into, parsed)
            print(f"Scored {n} rows into {args.into}")
        report = accuracy(wh, args.table, parsed, args.threshold)
    print(json.dumps(report.to_dict(), indent=2))
    return 0


COMMANDS = {
    "run": cmd_run,
    "seed": cmd_seed,
    "sql": cmd_sql,
    "score": cmd_score,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 2

    configure_logging(args.log_level)
    try:
        return COMMANDS[args.command](args)
    except (ValueError, FileNotFoundError, duckdb.Error) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

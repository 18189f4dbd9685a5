#!/usr/bin/env python3
"""
Branch vs SQL experiment: time producing and reconciling a modified table copy.

This script:
1. Creates T1 and T2 from T0 at snapshot sp_base (branch clone or CREATE TABLE AS SELECT)
2. Samples C keys of T2 into rnd_keys by CRC32 threshold and bumps l_discount on them
3. Diffs T2 against T1 and merges T2 into T1 (DATA BRANCH DIFF/MERGE or plain SQL)
4. Prints the wall-clock duration of every timed step

T1 and T2 are left in the database for inspection. rnd_keys is always dropped,
including when a step fails or the run is interrupted.

Usage:
    python3 benchmarks/branch_experiment.py branch 100000
    MYSQL_PASSWORD= python3 benchmarks/branch_experiment.py sql 100 --output results.json

Exit codes:
    0          - All steps succeeded
    1          - Invalid arguments or the mysql client is missing
    other      - Exit status of the failing mysql invocation
"""

import signal
import sys
from typing import Dict, List, Optional

from branch_bench.experiment_config import (
    ConnectionConfig,
    build_parser,
    resolve_client_binary,
)
from branch_bench.experiment_sql import (
    SAMPLING_TABLE,
    compute_threshold,
    create_sampling_table_sql,
    drop_table_sql,
    get_strategy,
    populate_sampling_table_sql,
    update_sql,
)
from branch_bench.result_formatter import ExperimentResults, format_report
from branch_bench.sql_client import MySQLClient, parse_count
from branch_bench.timing import (
    SamplingTableGuard,
    StepFailedError,
    TimingReport,
    measure,
    require_success,
)


class ExperimentContext:
    """Mutable state of one run: the client, timings and parsed diff counts."""

    def __init__(self, client, mode: str, sample_count: int):
        self.client = client
        self.strategy = get_strategy(mode)
        self.sample_count = sample_count
        self.threshold = compute_threshold(sample_count)
        self.report = TimingReport()
        self.diff_counts: Dict[str, Optional[int]] = {}

    def run(self, label: str, sql: str):
        """Run an untimed statement."""
        require_success(label, self.client.run_sql(sql))

    def timed(self, label: str, sql: str):
        measure(self.report, label, lambda: self.client.run_sql(sql))

    def timed_count(self, label: str, sql: str):
        """Timed statement whose output carries a row count."""
        def action():
            status, output = self.client.query(sql)
            self.diff_counts[label] = parse_count(output) if status == 0 else None
            return status

        measure(self.report, label, action)


def prepare_tables(ctx: ExperimentContext):
    strategy = ctx.strategy
    print(f"Step 0: prepare T1/T2 using mode={strategy.mode}", flush=True)

    for table in ("T1", "T2"):
        ctx.run(f"drop {table}", drop_table_sql(table))
        ctx.timed(strategy.create_label(table), strategy.create_table_sql(table))


def update_sample(ctx: ExperimentContext, guard: SamplingTableGuard):
    print(f"Step 1: update T2 (C={ctx.sample_count})", flush=True)

    ctx.run(f"drop {SAMPLING_TABLE}", drop_table_sql(SAMPLING_TABLE))
    ctx.run(f"create {SAMPLING_TABLE}", create_sampling_table_sql())
    guard.arm()

    ctx.timed(f"populate {SAMPLING_TABLE}", populate_sampling_table_sql(ctx.threshold, ctx.sample_count))
    ctx.timed("update T2", update_sql(ctx.sample_count))

    ctx.run(f"drop {SAMPLING_TABLE}", drop_table_sql(SAMPLING_TABLE))
    guard.disarm()


def diff_and_merge(ctx: ExperimentContext):
    strategy = ctx.strategy
    print("Step 2: diff/merge", flush=True)

    ctx.timed_count(strategy.diff_label, strategy.diff_sql())
    ctx.timed(strategy.merge_label, strategy.merge_sql())


def run_experiment(client, mode: str, sample_count: int) -> ExperimentContext:
    """
    Run every step in order against `client`.

    Args:
        client: Object with run_sql(sql) -> int and query(sql) -> (int, str)
        mode: 'branch' or 'sql'
        sample_count: Number of rows to sample and update (C)

    Returns:
        The context holding the timing report and diff counts

    Raises:
        StepFailedError: As soon as any statement fails; rnd_keys is dropped first
    """
    ctx = ExperimentContext(client, mode, sample_count)

    with SamplingTableGuard(client) as guard:
        prepare_tables(ctx)
        update_sample(ctx, guard)
        diff_and_merge(ctx)

    return ctx


def _raise_system_exit(signum, frame):
    raise SystemExit(128 + signum)


def install_signal_handlers():
    """Turn SIGTERM/SIGHUP into SystemExit so `with` blocks still clean up."""
    for name in ("SIGTERM", "SIGHUP"):
        signum = getattr(signal, name, None)
        if signum is not None:
            signal.signal(signum, _raise_system_exit)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = ConnectionConfig.from_env()
    if resolve_client_binary(config) is None:
        print(f"{config.bin_path} is required to run the experiment but was not found", file=sys.stderr)
        return 1

    client = MySQLClient(config, echo_sql=args.echo_sql)
    install_signal_handlers()

    try:
        ctx = run_experiment(client, args.create_mode, args.C)
    except StepFailedError as e:
        return e.returncode
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130

    results = ExperimentResults(
        mode=args.create_mode,
        sample_count=args.C,
        threshold=ctx.threshold,
        report=ctx.report,
        diff_counts=ctx.diff_counts,
        connection=config.to_dict(),
    )

    report = format_report(results)
    if report:
        print(report)

    if args.output:
        results.save_json(args.output)
        print(f"\nResults written to: {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())

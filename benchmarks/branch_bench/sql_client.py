"""
Run single SQL statements through the mysql command-line client.

Each statement is one blocking client invocation; only the exit status is
checked. The password reaches the client through MYSQL_PWD in the child's
environment, never on the command line.
"""

import os
import re
import subprocess
import sys
from typing import Dict, List, Optional, Tuple

from branch_bench.experiment_config import ConnectionConfig

_INTEGER_TOKEN = re.compile(r"-?\d+")
_TABLE_BORDER = re.compile(r"^[+\-| ]+$")


def normalize_returncode(returncode: int) -> int:
    """Map a child killed by signal N (returncode -N) to the shell's 128 + N."""
    if returncode < 0:
        return 128 - returncode
    return returncode


def parse_count(output: str) -> Optional[int]:
    """
    Extract a row count from client output.

    The count is the last integer on the last line that is neither blank nor
    a table border, which covers both `count(*)\\n42` (batch output) and
    table-formatted output.

    Returns:
        The count, or None if the output holds no integer
    """
    lines = [
        line for line in output.splitlines()
        if line.strip() and not _TABLE_BORDER.match(line.strip())
    ]
    if not lines:
        return None

    tokens = _INTEGER_TOKEN.findall(lines[-1])
    if not tokens:
        return None

    return int(tokens[-1])


class MySQLClient:
    """Executes statements with fixed connection flags taken from a ConnectionConfig."""

    def __init__(self, config: ConnectionConfig, echo_sql: bool = False):
        self.config = config
        self.echo_sql = echo_sql

    def connection_args(self) -> List[str]:
        args = ["-h", self.config.host, "-P", str(self.config.port), "-u", self.config.user]
        if self.config.database:
            args.extend(["-D", self.config.database])
        return args

    def build_command(self, sql: str) -> List[str]:
        return [self.config.bin_path] + self.connection_args() + ["-e", sql]

    def build_env(self) -> Dict[str, str]:
        """Child environment: ours plus MYSQL_PWD when a password is configured."""
        env = os.environ.copy()
        if self.config.has_password:
            env["MYSQL_PWD"] = self.config.password
        else:
            env.pop("MYSQL_PWD", None)
        return env

    def run_sql(self, sql: str) -> int:
        """
        Execute one statement, letting the client print to our stdout/stderr.

        Returns:
            Client exit status (0 on success)
        """
        if self.echo_sql:
            print(f"-- {sql}", file=sys.stderr, flush=True)

        sys.stdout.flush()
        result = subprocess.run(self.build_command(sql), env=self.build_env())
        return normalize_returncode(result.returncode)

    def query(self, sql: str) -> Tuple[int, str]:
        """
        Execute one statement and capture its stdout.

        The captured text is echoed back to our stdout so the client's own
        output stays visible.

        Returns:
            Tuple of (exit status, captured stdout)
        """
        if self.echo_sql:
            print(f"-- {sql}", file=sys.stderr, flush=True)

        sys.stdout.flush()
        result = subprocess.run(
            self.build_command(sql),
            env=self.build_env(),
            stdout=subprocess.PIPE,
            text=True,
        )
        output = result.stdout or ""
        if output:
            print(output, end="" if output.endswith("\n") else "\n", flush=True)

        return normalize_returncode(result.returncode), output

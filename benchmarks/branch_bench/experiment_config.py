"""
Command-line and environment configuration for the branch experiment.

The experiment takes two positional arguments (create mode and sample count)
and reads its database connection settings from MYSQL_* environment variables.
"""

import argparse
import os
import re
import shutil
import sys
from typing import Mapping, Optional

MODES = ("branch", "sql")

DEFAULT_BIN = "mysql"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = "6001"
DEFAULT_USER = "dump"
DEFAULT_PASSWORD = "111"
DEFAULT_DB = "tpch_100g"

_COUNT_PATTERN = re.compile(r"[0-9]+")

ENVIRONMENT_HELP = f"""\
Environment (override with export before running):
  MYSQL_BIN       (default: {DEFAULT_BIN})
  MYSQL_HOST      (default: {DEFAULT_HOST})
  MYSQL_PORT      (default: {DEFAULT_PORT})
  MYSQL_USER      (default: {DEFAULT_USER})
  MYSQL_PASSWORD  (default: {DEFAULT_PASSWORD}, set empty for passwordless)
  MYSQL_DB        (default: {DEFAULT_DB})
"""


class ConnectionConfig:
    """Connection settings for the database command-line client."""

    def __init__(self, bin_path: str = DEFAULT_BIN, host: str = DEFAULT_HOST,
                 port: str = DEFAULT_PORT, user: str = DEFAULT_USER,
                 password: Optional[str] = DEFAULT_PASSWORD, database: Optional[str] = DEFAULT_DB):
        self.bin_path = bin_path
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.database = database

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ConnectionConfig":
        """
        Build a config from MYSQL_* variables.

        Empty values fall back to the defaults, except MYSQL_PASSWORD: it only
        defaults when unset, and an empty value means "no password".

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            ConnectionConfig with every field resolved
        """
        if environ is None:
            environ = os.environ

        return cls(
            bin_path=environ.get("MYSQL_BIN") or DEFAULT_BIN,
            host=environ.get("MYSQL_HOST") or DEFAULT_HOST,
            port=environ.get("MYSQL_PORT") or DEFAULT_PORT,
            user=environ.get("MYSQL_USER") or DEFAULT_USER,
            password=environ.get("MYSQL_PASSWORD", DEFAULT_PASSWORD),
            database=environ.get("MYSQL_DB") or DEFAULT_DB,
        )

    @property
    def has_password(self) -> bool:
        return bool(self.password)

    def to_dict(self) -> dict:
        """Connection settings safe for reports (password omitted)."""
        return {
            "bin": self.bin_path,
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "database": self.database,
            "password_set": self.has_password,
        }


def resolve_client_binary(config: ConnectionConfig) -> Optional[str]:
    """
    Locate the client binary on PATH (or as an explicit path).

    Returns:
        Absolute path of the executable, or None if it cannot be found
    """
    return shutil.which(config.bin_path)


def parse_sample_count(raw: str) -> int:
    """Parse the sample count C: digits only, base 10, strictly positive."""
    if not _COUNT_PATTERN.fullmatch(raw):
        raise argparse.ArgumentTypeError("C must be a positive integer")

    count = int(raw, 10)
    if count <= 0:
        raise argparse.ArgumentTypeError("C must be greater than 0")

    return count


class ExperimentArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports usage errors with the full help text and exit status 1."""

    def error(self, message):
        print(f"{self.prog}: error: {message}", file=sys.stderr)
        self.print_help(sys.stderr)
        self.exit(1)


def build_parser(prog: Optional[str] = None) -> ExperimentArgumentParser:
    parser = ExperimentArgumentParser(
        prog=prog,
        description="Time branch clone/diff/merge against the equivalent plain SQL.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=ENVIRONMENT_HELP,
    )
    parser.add_argument(
        "create_mode",
        choices=MODES,
        help="How T1/T2 are created and reconciled: branch | sql",
    )
    parser.add_argument(
        "C",
        type=parse_sample_count,
        help="Positive integer count of rows to sample and update",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Also write results as JSON to this path",
    )
    parser.add_argument(
        "--echo-sql",
        action="store_true",
        help="Print each statement to stderr before running it",
    )
    return parser

import os
import stat
import textwrap

import duckdb
import pytest

# Stand-in for the mysql client: appends each statement (newlines folded to
# spaces) to $FAKE_MYSQL_LOG, prints a one-row count result, and exits with
# $FAKE_MYSQL_FAIL_STATUS when the statement contains $FAKE_MYSQL_FAIL_ON.
FAKE_MYSQL_SCRIPT = textwrap.dedent("""\
    #!/bin/sh
    for last; do :; done
    printf '%s\\n' "$(printf '%s' "$last" | tr '\\n' ' ')" >> "$FAKE_MYSQL_LOG"
    printf '%s\\n' "${MYSQL_PWD-<unset>}" >> "$FAKE_MYSQL_LOG.pwd"
    if [ -n "$FAKE_MYSQL_FAIL_ON" ]; then
        case "$last" in
            *"$FAKE_MYSQL_FAIL_ON"*) exit "${FAKE_MYSQL_FAIL_STATUS:-1}" ;;
        esac
    fi
    echo 'count(*)'
    echo "${FAKE_MYSQL_COUNT:-0}"
""")


def pytest_addoption(parser):
    """Add custom command-line options"""
    parser.addoption(
        "--no-duckdb",
        action="store_true",
        default=False,
        help="Skip tests that run SQL on DuckDB"
    )


@pytest.fixture
def duckdb_db(request):
    """Create DuckDB in-memory database connection"""
    if request.config.getoption("--no-duckdb"):
        pytest.skip("DuckDB tests disabled with --no-duckdb")

    conn = duckdb.connect(':memory:')
    yield conn
    conn.close()


class FakeMySQL:
    """Handle on the fake client script and its invocation log."""

    def __init__(self, path, log_path):
        self.path = path
        self.log_path = log_path

    def statements(self):
        if not self.log_path.exists():
            return []
        return self.log_path.read_text().splitlines()

    def passwords(self):
        pwd_path = self.log_path.with_name(self.log_path.name + ".pwd")
        if not pwd_path.exists():
            return []
        return pwd_path.read_text().splitlines()


@pytest.fixture
def fake_mysql(tmp_path, monkeypatch):
    """Point MYSQL_BIN at an executable fake client that logs every statement."""
    script = tmp_path / "fake-mysql"
    script.write_text(FAKE_MYSQL_SCRIPT)
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    log_path = tmp_path / "statements.log"

    for name in ("MYSQL_HOST", "MYSQL_PORT", "MYSQL_USER", "MYSQL_PASSWORD", "MYSQL_DB",
                 "MYSQL_PWD", "FAKE_MYSQL_FAIL_ON", "FAKE_MYSQL_FAIL_STATUS", "FAKE_MYSQL_COUNT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MYSQL_BIN", str(script))
    monkeypatch.setenv("FAKE_MYSQL_LOG", str(log_path))

    return FakeMySQL(script, log_path)


class RecordingClient:
    """In-process client double: records statements, fails or interrupts on demand."""

    def __init__(self, fail_on=None, fail_status=1, interrupt_on=None, count_output="count(*)\n0\n"):
        self.statements = []
        self.fail_on = fail_on
        self.fail_status = fail_status
        self.interrupt_on = interrupt_on
        self.count_output = count_output

    def run_sql(self, sql):
        self.statements.append(sql)
        if self.interrupt_on and self.interrupt_on in sql:
            raise KeyboardInterrupt
        if self.fail_on and self.fail_on in sql:
            return self.fail_status
        return 0

    def query(self, sql):
        status = self.run_sql(sql)
        return status, self.count_output if status == 0 else ""


@pytest.fixture
def recording_client():
    return RecordingClient()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every MYSQL_* variable so defaults apply."""
    for name in list(os.environ):
        if name.startswith("MYSQL_"):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def make_client():
    """Factory for RecordingClient with custom failure behaviour."""
    return RecordingClient

"""
SQL text for the branch experiment.

Statements are literal MySQL-dialect strings. Branch mode additionally uses the
vendor clone/diff/merge extensions (CLONE, DATA BRANCH DIFF, DATA BRANCH MERGE).
"""

# lineitem row count at scale factor 100
POPULATION = 600_000_000
HASH_SPACE = 2 ** 32
OVERSAMPLE_FACTOR = 10

DISCOUNT_DELTA = "0.01"
SNAPSHOT = "sp_base"
BASE_TABLE = "T0"
SAMPLING_TABLE = "rnd_keys"


def compute_threshold(count: int) -> float:
    """
    CRC32 cutoff that selects roughly `count` rows out of POPULATION.

    The uniform fraction count/POPULATION is scaled onto the 32-bit hash space
    and oversampled so at least `count` candidates survive before LIMIT.
    A result above HASH_SPACE simply lets every row through.
    """
    return (count / float(POPULATION)) * HASH_SPACE * OVERSAMPLE_FACTOR


def drop_table_sql(table: str) -> str:
    return f"DROP TABLE IF EXISTS {table};"


def create_sampling_table_sql() -> str:
    return (
        f"CREATE TABLE {SAMPLING_TABLE} (\n"
        "  l_orderkey BIGINT,\n"
        "  l_linenumber INT,\n"
        "  PRIMARY KEY (l_orderkey, l_linenumber)\n"
        ");"
    )


def populate_sampling_table_sql(threshold: float, count: int) -> str:
    return f"""\
INSERT INTO {SAMPLING_TABLE}
SELECT l_orderkey, l_linenumber
FROM T2
WHERE CRC32(CONCAT(l_orderkey, ':', l_linenumber)) < {threshold!r}
LIMIT {count};"""


def update_sql(count: int) -> str:
    """Bump l_discount on at most `count` sampled rows of T2, picked in key order."""
    return f"""\
UPDATE T2
JOIN (
  SELECT l_orderkey, l_linenumber
  FROM {SAMPLING_TABLE}
  ORDER BY l_orderkey, l_linenumber
  LIMIT {count}
) b
ON T2.l_orderkey = b.l_orderkey AND T2.l_linenumber = b.l_linenumber
SET T2.l_discount = T2.l_discount + {DISCOUNT_DELTA};"""


class ModeStrategy:
    """Statements and step labels for one create mode."""

    mode = ""
    create_suffix = ""
    diff_label = ""
    merge_label = ""

    def create_table_sql(self, table: str) -> str:
        raise NotImplementedError

    def diff_sql(self) -> str:
        raise NotImplementedError

    def merge_sql(self) -> str:
        raise NotImplementedError

    def create_label(self, table: str) -> str:
        return f"create {table} ({self.create_suffix})"


class BranchStrategy(ModeStrategy):
    """Native clone / branch diff / branch merge."""

    mode = "branch"
    create_suffix = "branch clone"
    diff_label = "branch diff T2 vs T1"
    merge_label = "branch merge T2 into T1"

    def create_table_sql(self, table: str) -> str:
        return f'CREATE TABLE {table} CLONE {BASE_TABLE}{{snapshot="{SNAPSHOT}"}};'

    def diff_sql(self) -> str:
        return "DATA BRANCH DIFF T2 AGAINST T1 OUTPUT COUNT;"

    def merge_sql(self) -> str:
        return "DATA BRANCH MERGE T2 INTO T1;"


class SqlStrategy(ModeStrategy):
    """The same steps written as portable SQL."""

    mode = "sql"
    create_suffix = "sql copy"
    diff_label = "sql diff T2 vs T1"
    merge_label = "sql merge T2 into T1"

    def create_table_sql(self, table: str) -> str:
        return f'CREATE TABLE {table} AS SELECT * FROM {BASE_TABLE}{{snapshot="{SNAPSHOT}"}};'

    def diff_sql(self) -> str:
        # Rows of T2 count -1, rows of T1 count +1; any (key, discount) whose
        # signed sum is non-zero exists on one side only.
        return """\
WITH unionT AS (
  SELECT -1 AS cnt, L_ORDERKEY, L_LINENUMBER, L_DISCOUNT FROM T2
  UNION ALL
  SELECT 1 AS cnt, L_ORDERKEY, L_LINENUMBER, L_DISCOUNT FROM T1
)
select count(*) from (
  SELECT
    SUM(cnt) AS diffCnt,
    L_ORDERKEY,
    L_LINENUMBER,
    L_DISCOUNT
  FROM unionT
  GROUP BY L_ORDERKEY, L_LINENUMBER, L_DISCOUNT
  HAVING SUM(cnt) <> 0
);"""

    def merge_sql(self) -> str:
        return """\
START TRANSACTION;

UPDATE T1 AS t1
JOIN T2 AS t2
ON t1.L_ORDERKEY = t2.L_ORDERKEY AND t1.L_LINENUMBER = t2.L_LINENUMBER
SET t1.L_DISCOUNT = t2.L_DISCOUNT
WHERE NOT (t1.L_DISCOUNT = t2.L_DISCOUNT);

COMMIT;"""


STRATEGIES = {
    BranchStrategy.mode: BranchStrategy,
    SqlStrategy.mode: SqlStrategy,
}


def get_strategy(mode: str) -> ModeStrategy:
    """Return the statement strategy for a create mode ('branch' or 'sql')."""
    try:
        return STRATEGIES[mode]()
    except KeyError:
        raise ValueError(f"Unknown create mode: {mode!r}") from None

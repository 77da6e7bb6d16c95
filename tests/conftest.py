"""Shared pytest fixtures for all tests."""

import logging

import duckdb
import pytest
import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from relinfer.core.config import InferenceConfig, clear_config_cache
from relinfer.sources import DuckDBDataSource
from relinfer.storage import create_store_engine, init_database


def build_scenario_tables(conn: duckdb.DuckDBPyConnection) -> None:
    """Create the reference dataset.

    - customers (50 rows) / orders (100 rows): orders.customer_ref has 80
      non-null values over 40 distinct ids, 38 of which exist in customers
    - tags (20 rows) / posts (200 rows): posts.tags arrays of 1-5 ids
      (avg 2.3) over 18 distinct tags
    - orders.coupon_ref is always NULL
    - orders.legacy_ids holds ids that exist nowhere
    """
    conn.execute("""
        CREATE TABLE customers AS
        SELECT
            'cus_' || i AS id,
            'Customer ' || i AS name
        FROM generate_series(1, 50) AS t(i)
    """)

    conn.execute("""
        CREATE TABLE orders AS
        SELECT
            'ord_' || i AS id,
            CASE
                WHEN i > 80 THEN NULL
                WHEN (i - 1) % 40 + 1 > 38 THEN 'ghost_' || ((i - 1) % 40 + 1)
                ELSE 'cus_' || ((i - 1) % 40 + 1)
            END AS customer_ref,
            (i * 1.5)::DOUBLE AS amount,
            CAST(NULL AS VARCHAR) AS coupon_ref,
            ['legacy_' || i] AS legacy_ids
        FROM generate_series(1, 100) AS t(i)
    """)

    conn.execute("""
        CREATE TABLE tags AS
        SELECT
            'tag_' || i AS id,
            'Tag ' || i AS label
        FROM generate_series(1, 20) AS t(i)
    """)

    # Lengths per post cycle over 10 posts: 5,1,2,2,2,2,2,3,3,1 (avg 2.3)
    conn.execute("""
        CREATE TABLE posts AS
        WITH post_lengths AS (
            SELECT
                i,
                CASE i % 10
                    WHEN 0 THEN 5
                    WHEN 1 THEN 1
                    WHEN 7 THEN 3
                    WHEN 8 THEN 3
                    WHEN 9 THEN 1
                    ELSE 2
                END AS n
            FROM generate_series(1, 200) AS t(i)
        )
        SELECT
            'post_' || p.i AS id,
            list('tag_' || ((p.i + k.k) % 18 + 1) ORDER BY k.k) AS tags
        FROM post_lengths p
        JOIN generate_series(0, 4) AS k(k) ON k.k < p.n
        GROUP BY p.i
        ORDER BY p.i
    """)


def build_projects_tables(conn: duckdb.DuckDBPyConnection) -> None:
    """projects.task_ids: each task belongs to exactly one project.

    Project 30 starts its list with an id that has no task.
    """
    conn.execute("""
        CREATE TABLE tasks AS
        SELECT 'task_' || i AS id, 'Task ' || i AS title
        FROM generate_series(1, 90) AS t(i)
    """)
    conn.execute("""
        CREATE TABLE projects AS
        SELECT
            'prj_' || i AS id,
            CASE
                WHEN i = 30 THEN ['task_missing', 'task_' || (3 * i - 1), 'task_' || (3 * i)]
                ELSE ['task_' || (3 * i - 2), 'task_' || (3 * i - 1), 'task_' || (3 * i)]
            END AS task_ids
        FROM generate_series(1, 30) AS t(i)
    """)


@pytest.fixture(autouse=True)
def _reset_config_cache():
    """Settings and YAML config are cached per process."""
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture(autouse=True)
def _restore_logging(monkeypatch):
    """CLI tests reconfigure logging onto CliRunner streams that get closed.

    Logger caching is disabled so no module-level logger stays bound to such
    a stream, and the logging setup is restored after each test.
    """
    configure = structlog.configure

    def _configure_uncached(**kwargs):
        kwargs["cache_logger_on_first_use"] = False
        configure(**kwargs)

    monkeypatch.setattr(structlog, "configure", _configure_uncached)
    structlog_config = structlog.get_config()
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    structlog.reset_defaults()
    configure(**structlog_config)
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def duckdb_conn():
    """Create an in-memory DuckDB connection for testing."""
    conn = duckdb.connect(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def scenario_conn(duckdb_conn):
    """In-memory DuckDB holding the reference dataset."""
    build_scenario_tables(duckdb_conn)
    return duckdb_conn


@pytest.fixture
def projects_conn(duckdb_conn):
    """In-memory DuckDB holding projects.task_ids -> tasks."""
    build_projects_tables(duckdb_conn)
    return duckdb_conn


@pytest.fixture
def scenario_source(scenario_conn) -> DuckDBDataSource:
    return DuckDBDataSource(scenario_conn)


@pytest.fixture
def scenario_db_path(tmp_path):
    """File-based DuckDB holding the reference dataset (closed after setup)."""
    db_path = tmp_path / "import.duckdb"
    conn = duckdb.connect(str(db_path))
    build_scenario_tables(conn)
    conn.close()
    return db_path


@pytest.fixture
def config() -> InferenceConfig:
    """Default inference configuration, independent of any YAML file."""
    return InferenceConfig()


@pytest.fixture
def sql_engine() -> Engine:
    """In-memory SQLite engine with the report schema."""
    engine = create_store_engine("sqlite:///:memory:")
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(sql_engine) -> Session:
    with Session(sql_engine) as s:
        yield s

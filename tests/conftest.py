import pytest


def pytest_addoption(parser):
    """Options of the PostgreSQL test run.

    PostgreSQL tests exercise ``FOR UPDATE SKIP LOCKED`` claims and the
    server-side clock. They need a disposable database, since the fixtures
    drop and recreate the ``jobs`` table.
    """
    parser.addoption(
        "--postgres",
        action="store_true",
        default=False,
        help="Also run the queue tests against a PostgreSQL server",
    )
    parser.addoption(
        "--postgres-host",
        action="store",
        default="localhost",
        help="Host of the PostgreSQL server holding the jobs table",
    )
    parser.addoption(
        "--postgres-port",
        action="store",
        default="5432",
        help="Port of the PostgreSQL server (default: 5432)",
    )
    parser.addoption(
        "--postgres-user",
        action="store",
        default="postgres",
        help="User allowed to create and drop the jobs table",
    )
    parser.addoption(
        "--postgres-password",
        action="store",
        default="postgres",
        help="Password of that user",
    )
    parser.addoption(
        "--postgres-database",
        action="store",
        default="postgres",
        help="Database where the jobs table is created and dropped",
    )


@pytest.fixture(scope="session")
def postgres_url_params(request) -> dict[str, str]:
    if not request.config.getoption("--postgres"):
        pytest.skip("PostgreSQL tests are disabled, pass --postgres to run them")

    return {
        option: request.config.getoption(f"--postgres-{option}")
        for option in ("host", "port", "user", "password", "database")
    }


def _postgres_url(driver: str, params: dict[str, str]) -> str:
    return (
        f"postgresql+{driver}://{params['user']}:{params['password']}"
        f"@{params['host']}:{params['port']}/{params['database']}"
    )


@pytest.fixture(scope="session")
def postgres_dsn_sync(postgres_url_params) -> str:
    """URL of the test database for the psycopg2 driver."""
    return _postgres_url("psycopg2", postgres_url_params)


@pytest.fixture(scope="session")
def postgres_dsn_async(postgres_url_params) -> str:
    """URL of the test database for the asyncpg driver."""
    return _postgres_url("asyncpg", postgres_url_params)

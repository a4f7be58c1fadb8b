import logging
import time

import pytest
import pytest_asyncio
from sqlalchemy.exc import DBAPIError

from quppy import Quppy, AsyncQuppy, Job
from quppy.core import common


@pytest.fixture
def qp_sqlite(tmp_path):
    logging.getLogger("quppy").setLevel(logging.DEBUG)

    instance = Quppy(
        f"sqlite:///{tmp_path / 'jobs.db'}",
        connect_args={"check_same_thread": False},
    )
    instance.create_all()
    try:
        yield instance
    finally:
        instance.engine.dispose()


@pytest_asyncio.fixture
async def qp_aiosqlite(tmp_path):
    logging.getLogger("quppy").setLevel(logging.DEBUG)

    instance = AsyncQuppy(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}")
    await instance.create_all()
    try:
        yield instance
    finally:
        await instance.engine.dispose()


@pytest.fixture
def qp_psycopg2(postgres_dsn_sync):
    logging.getLogger("quppy").setLevel(logging.DEBUG)

    instance = Quppy(postgres_dsn_sync)
    instance.drop_all()
    instance.create_all()
    try:
        yield instance
    finally:
        instance.drop_all()
        instance.engine.dispose()


@pytest_asyncio.fixture
async def qp_asyncpg(postgres_dsn_async):
    logging.getLogger("quppy").setLevel(logging.DEBUG)

    instance = AsyncQuppy(postgres_dsn_async)
    await instance.drop_all()
    await instance.create_all()
    try:
        yield instance
    finally:
        await instance.drop_all()
        await instance.engine.dispose()


def claim_retrying(qp: Quppy) -> Job | None:
    """Claim a job, retrying while the database reports contention."""
    while True:
        try:
            return qp.claim()
        except DBAPIError as exc:
            if not common.is_contention_error(exc):
                raise
            time.sleep(0.01)


def wait_for(condition, timeout: float = 10.0) -> None:
    deadline = time.monotonic() + timeout
    while not condition():
        if time.monotonic() > deadline:
            raise AssertionError("Condition was not met in time")
        time.sleep(0.01)

"""Current time as seen by the database server.

Lease deadlines are always computed and compared on the server, so workers
running on hosts with skewed clocks still agree on whether a lease expired.
Values are Unix epoch milliseconds in UTC, the same unit as the ``deadline``
column.

Only SQLite and PostgreSQL are supported.
"""
from sqlalchemy import BigInteger
from sqlalchemy.exc import CompileError
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.expression import FunctionElement


class store_now_ms(FunctionElement):
    type = BigInteger()
    inherit_cache = True


@compiles(store_now_ms)
def _unsupported_now_ms(element, compiler, **kw) -> str:
    raise CompileError(
        f"Database dialect '{compiler.dialect.name}' is not supported, "
        "use SQLite or PostgreSQL"
    )


@compiles(store_now_ms, "postgresql")
def _postgres_now_ms(element, compiler, **kw) -> str:
    # CURRENT_TIMESTAMP is frozen at transaction start in PostgreSQL
    return "CAST(EXTRACT(EPOCH FROM clock_timestamp()) * 1000 AS BIGINT)"


@compiles(store_now_ms, "sqlite")
def _sqlite_now_ms(element, compiler, **kw) -> str:
    # 2440587.5 is the Julian day of the Unix epoch
    return "CAST((julianday('now') - 2440587.5) * 86400000 AS INTEGER)"

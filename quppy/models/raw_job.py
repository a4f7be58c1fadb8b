from typing import Optional

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import mapped_column, Mapped

from .base_sql import BaseSQL


class RawJob(BaseSQL):
    __tablename__ = "jobs"
    __table_args__ = {"sqlite_autoincrement": True}

    # SQLite only aliases ROWID for a plain INTEGER primary key
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="pending", index=True
    )
    payload: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    attempts_remaining: Mapped[int] = mapped_column(Integer, nullable=False)
    time_limit_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    deadline: Mapped[int] = mapped_column(
        BigInteger, nullable=False, index=True
    )
    error: Mapped[Optional[str]] = mapped_column(String, nullable=True)

from typing import Any, Callable, TypeVar

from sqlalchemy import (
    and_,
    desc,
    insert,
    or_,
    select,
    update,
    ColumnElement,
    Insert,
    Update,
)
from sqlalchemy.orm import aliased

from quppy.models.params import EnqueueParams
from quppy.models.raw_job import RawJob
from quppy.models.store_clock import store_now_ms


DecoratedCallable = TypeVar("DecoratedCallable", bound=Callable[..., Any])


class StopWorker(BaseException):
    pass


class BaseQuppy:
    """This class exists for proper type hinting and dependency inversion."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    FAILED = "failed"

    @staticmethod
    def _eligible_clause(jobs: Any = RawJob) -> ColumnElement[bool]:
        return and_(
            jobs.attempts_remaining > 0,
            or_(
                jobs.status == BaseQuppy.PENDING,
                # Leases that ran out may be picked up by another worker
                and_(
                    jobs.status == BaseQuppy.IN_PROGRESS,
                    jobs.deadline < store_now_ms(),
                ),
            ),
        )

    @staticmethod
    def _next_deadline() -> ColumnElement[int]:
        return store_now_ms() + RawJob.time_limit_seconds * 1000

    @staticmethod
    def _enqueue_statement(params: EnqueueParams) -> Insert:
        stmt = (
            insert(RawJob)
            .values(
                status=BaseQuppy.PENDING,
                payload=params.serialized_payload,
                max_attempts=params.max_attempts,
                attempts_remaining=params.max_attempts,
                time_limit_seconds=params.time_limit_seconds,
                deadline=store_now_ms() + params.time_limit_seconds * 1000,
            )
            .returning(RawJob)
        )
        return stmt

    @staticmethod
    def _claim_statement() -> Update:
        candidate = aliased(RawJob)
        candidate_id = (
            select(candidate.id)
            .where(BaseQuppy._eligible_clause(candidate))
            .order_by(desc(candidate.deadline), candidate.id)
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(RawJob)
            .where(RawJob.id == candidate_id, BaseQuppy._eligible_clause())
            .values(
                status=BaseQuppy.IN_PROGRESS,
                deadline=BaseQuppy._next_deadline(),
                attempts_remaining=RawJob.attempts_remaining - 1,
            )
            .returning(RawJob)
            .execution_options(synchronize_session=False)
        )
        return stmt

    @staticmethod
    def _guarded_statement(job_id: int, attempts_remaining: int) -> Update:
        # The job is still ours only if nobody claimed it since we did.
        # Every claim decrements attempts_remaining, so a changed counter
        # means the lease was lost.
        stmt = (
            update(RawJob)
            .where(
                RawJob.id == job_id,
                RawJob.attempts_remaining == attempts_remaining,
                RawJob.status == BaseQuppy.IN_PROGRESS,
            )
            .execution_options(synchronize_session=False)
        )
        return stmt

    @staticmethod
    def _complete_statement(job_id: int, attempts_remaining: int) -> Update:
        return BaseQuppy._guarded_statement(job_id, attempts_remaining).values(
            status=BaseQuppy.COMPLETE
        )

    @staticmethod
    def _fail_statement(
        job_id: int, attempts_remaining: int, reason: str | None
    ) -> Update:
        stmt = BaseQuppy._guarded_statement(job_id, attempts_remaining)
        if attempts_remaining <= 0:
            return stmt.values(status=BaseQuppy.FAILED, error=reason)

        # Put the job back in the pool for another attempt
        return stmt.values(
            status=BaseQuppy.PENDING,
            deadline=BaseQuppy._next_deadline(),
        )

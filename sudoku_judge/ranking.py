"""
Leaderboard recomputation.

For every user and every problem they solved, the earliest accepted submission
counts: its accepted per-case times and its stored memory are summed over all
solved problems. Users are ordered by solved count (desc), total time (asc) and
total memory (asc). Users without an accepted submission get no aggregates and
no rank.

Every recomputation is a full pass over all users, serialized by a process-wide
lock and written in a single transaction, so running it twice in a row gives the
same result.
"""
import asyncio
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import JudgeStatus, Submission, SubmissionResult, User

logger = logging.getLogger(__name__)

_ranking_lock = asyncio.Lock()


class UserStanding:
    def __init__(self, user_id: int):
        self.user_id = user_id
        self.solved = 0
        self.total_time_ms = 0
        self.total_memory_kb = 0

    def sort_key(self):
        return (-self.solved, self.total_time_ms, self.total_memory_kb)


async def compute_standings(session: AsyncSession) -> list:
    """Aggregate every user with at least one AC, in leaderboard order."""
    result = await session.execute(
        select(Submission.id, Submission.user_id, Submission.problem_id, Submission.memory_kb)
        .where(Submission.status == JudgeStatus.ACCEPTED.value)
        .order_by(Submission.id)
    )
    best = {}  # (user_id, problem_id) -> (submission_id, memory_kb)
    for submission_id, user_id, problem_id, memory_kb in result.all():
        best.setdefault((user_id, problem_id), (submission_id, memory_kb))

    if not best:
        return []

    best_ids = [submission_id for submission_id, _ in best.values()]
    times = {}
    result = await session.execute(
        select(SubmissionResult.submission_id, SubmissionResult.exec_time_ms)
        .where(SubmissionResult.submission_id.in_(best_ids))
        .where(SubmissionResult.status == JudgeStatus.ACCEPTED.value)
    )
    for submission_id, exec_time_ms in result.all():
        times[submission_id] = times.get(submission_id, 0) + (exec_time_ms or 0)

    standings = {}
    for (user_id, _), (submission_id, memory_kb) in best.items():
        standing = standings.setdefault(user_id, UserStanding(user_id))
        standing.solved += 1
        standing.total_time_ms += times.get(submission_id, 0)
        standing.total_memory_kb += memory_kb or 0

    # sorted() is stable; equal keys keep user id order
    return sorted(sorted(standings.values(), key=lambda s: s.user_id), key=UserStanding.sort_key)


async def recompute_rankings(session: AsyncSession) -> list:
    """Recompute aggregates and ranks of all users from scratch and commit."""
    async with _ranking_lock:
        standings = await compute_standings(session)

        await session.execute(
            update(User).values(total_time_ms=None, total_memory_kb=None, rank=None)
        )
        for position, standing in enumerate(standings, 1):
            await session.execute(
                update(User)
                .where(User.id == standing.user_id)
                .values(total_time_ms=standing.total_time_ms,
                        total_memory_kb=standing.total_memory_kb,
                        rank=position)
            )
        await session.commit()

    logger.info("[Ranking] Ranked %d users", len(standings))
    return standings


async def update_user_ranking(session: AsyncSession, user_id: int) -> list:
    """Refresh rankings after `user_id` got an AC.

    A single user's aggregates cannot change without shifting other ranks, so
    this is always a full recomputation.
    """
    logger.debug("[Ranking] Recomputing after AC by user %d", user_id)
    return await recompute_rankings(session)

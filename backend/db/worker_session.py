"""Worker-safe database sessions for Celery tasks.

Each Celery task runs its own event loop, and asyncpg connections cannot
cross loops, so the worker builds a fresh engine for every task and
disposes of it when the task ends.
"""

from contextlib import asynccontextmanager

from db.database import create_db_engine, create_session_factory


@asynccontextmanager
async def worker_session_factory():
    """Yield a session factory bound to a task-private engine.

    Usage:
        async with worker_session_factory() as factory:
            store = SqlExecutionStore(factory)
            ...
    """
    engine = create_db_engine()
    try:
        yield create_session_factory(engine)
    finally:
        await engine.dispose()

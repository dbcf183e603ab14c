#!/usr/bin/env python3
"""
Database connection helpers for the audience preview store
Provides decorators for automatic connection management
"""

import functools
from contextlib import asynccontextmanager
from typing import Callable, Dict, Optional, Tuple

import aiosqlite


# name -> (argument count, implementation)
SqlFunctions = Dict[str, Tuple[int, Callable]]


@asynccontextmanager
async def aconnect(db_path: str, writer: bool = False,
                   functions: Optional[SqlFunctions] = None):
    """
    Asynchronous database connection context manager.

    Args:
        db_path: Path to SQLite database
        writer: If True, commits changes on exit
        functions: SQL functions to register on the connection
    """
    conn = await aiosqlite.connect(db_path)
    try:
        # Enable WAL mode for better concurrency
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA busy_timeout=5000")

        for name, (num_params, func) in (functions or {}).items():
            await conn.create_function(name, num_params, func, deterministic=True)

        yield conn

        if writer:
            await conn.commit()
    except Exception:
        if writer:
            await conn.rollback()
        raise
    finally:
        await conn.close()


def with_connection(writer: bool = False):
    """
    Decorator that provides a database connection to the decorated method.

    The instance must expose `db_path`; an optional `sql_functions`
    mapping is registered on every connection.

    Args:
        writer: If True, commits changes after successful execution
    """
    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(self, *args, **kwargs):
            functions = getattr(self, 'sql_functions', None)
            async with aconnect(self.db_path, writer=writer, functions=functions) as conn:
                return await fn(self, conn, *args, **kwargs)
        return wrapper
    return decorator

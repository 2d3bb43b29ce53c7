# =============================================================================
# 数据库连接与会话管理模块
# =============================================================================
# 本模块负责 SEOMaster 的数据库连接管理，是数据访问的基础层。
# 主要职责：
#   1. 惰性创建 SQLAlchemy 异步引擎（AsyncEngine）与会话工厂
#   2. 为 FastAPI 路由提供请求级会话（成功提交、异常回滚）
#   3. 为后台任务（分析分派、定时清理）提供独立的会话上下文
#   4. 建表、释放连接池与健康检查
#
# 设计说明：
#   - 模块级全局变量实现单例，整个进程共享同一连接池
#   - 后台任务不能复用请求会话（请求结束后会话即关闭），
#     因此 session_scope() 每次打开一个新会话
#   - 测试通过 configure_engine() 注入 SQLite 内存引擎
# =============================================================================

"""Database connection and session management for SEOMaster."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.models.base import Base

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Get or create the async database engine.

    Lazily constructs a singleton ``AsyncEngine`` from ``settings`` so the
    whole application shares one connection pool.

    Returns:
        AsyncEngine: A shared asynchronous engine bound to ``settings.database_url``.
    """
    global _engine
    if _engine is None:
        # 延迟导入 settings，避免模块加载时的循环依赖
        from settings import settings

        _engine = create_async_engine(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle,
            echo=settings.db_echo,
        )
        logger.info("Database engine created")
    return _engine


def configure_engine(engine: AsyncEngine) -> None:
    """Install an externally created engine (used by tests and scripts).

    Replaces the engine singleton and resets the session factory so that it
    is rebuilt on top of ``engine``.
    """
    global _engine, _session_factory
    _engine = engine
    _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory.

    ``expire_on_commit=False`` keeps attribute access valid after commit,
    which async handlers rely on when serializing committed rows.
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for FastAPI dependencies.

    Commits on success and rolls back on exception.

    Yields:
        AsyncSession: An active async SQLAlchemy session.
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """Open a standalone session outside of the request cycle.

    用于后台任务（分析结果回写、定时清理），语义与 get_session 相同：
    正常退出时提交，异常时回滚并重新抛出。
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create all tables registered on ``Base.metadata`` if missing."""
    # 导入模型模块以确保所有表已注册到 Base.metadata
    import apps.report.models  # noqa: F401
    import core.models.otp  # noqa: F401
    import core.models.user  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/verified")


async def close_db() -> None:
    """Dispose the database engine and clear the session factory."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database connections closed")


async def check_db_connection() -> bool:
    """Check whether the database connection is healthy.

    Executes a lightweight ``SELECT 1``.

    Returns:
        bool: ``True`` if the query succeeds, otherwise ``False``.
    """
    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        # 由调用方根据返回值决定是否返回 503
        logger.error(f"Database connection check failed: {e}")
        return False

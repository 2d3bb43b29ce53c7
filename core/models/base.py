# =============================================================================
# ORM 基础模型与通用混入类模块
# =============================================================================
# 本模块定义了 SEOMaster 中所有 SQLAlchemy ORM 模型的基类和通用混入。
#   1. Base：声明式基类，统一模型注册与元数据管理（建表、Alembic 迁移）
#   2. TimestampMixin：自动维护 created_at / updated_at
#   3. UUIDPrimaryKeyMixin：以 36 位字符串 UUID 作为主键
#
# 设计决策：
#   - 时间戳统一使用 UTC，在 Python 层生成
#   - 主键为字符串 UUID，对外暴露时不可枚举
# =============================================================================

"""Base models and mixins for SEOMaster."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    pass


class UUIDPrimaryKeyMixin:
    """Mixin providing a string UUID primary key generated at insert time."""

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=new_uuid,
    )


class TimestampMixin:
    """Mixin providing ``created_at`` and ``updated_at`` timestamps.

    The timestamps are generated in UTC at the Python layer. ``updated_at`` is
    refreshed automatically on update operations.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

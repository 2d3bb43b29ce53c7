# =============================================================================
# 模块: main.py
# 功能: SEOMaster 白标报告服务的主入口文件
# 架构角色: 作为整个 FastAPI 应用的启动和编排中心，负责：
#   1. 初始化日志系统
#   2. 管理应用生命周期（启动/关闭）
#   3. 注册路由（认证、报告），统一挂载在 /api 下
#   4. 配置中间件（CORS 跨域）和全局异常处理
#   5. 启动和停止定时任务调度器，关闭时等待进行中的分析任务
# =============================================================================
"""Main application entry point for SEOMaster."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# 数据库相关：初始化、关闭、连接检查
from core.database import init_db, close_db, check_db_connection
# 认证模块路由
from apps.auth import router as auth_router
# 报告模块路由与分析分派器
from apps.report import router as report_router
from apps.report.dispatcher import get_dispatcher
# 定时任务调度器的启动和停止函数
from apps.scheduler import start_scheduler, stop_scheduler
# 日志系统初始化
from common.logger import setup_logging
# 全局配置单例
from settings import settings

# 初始化日志系统，根据 settings.debug 决定日志级别
setup_logging(settings.debug, None)
logger = logging.getLogger(__name__)

# 关闭阶段等待进行中分析任务的最长时间（秒），超时的任务被取消
SHUTDOWN_DRAIN_TIMEOUT = 30.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # ======================== 启动阶段 ========================
    logger.info("Starting SEOMaster...")

    # 第一步：检查数据库连接是否可用，不可达时阻止应用启动
    if not await check_db_connection():
        logger.error("Database connection failed")
        raise RuntimeError("Cannot connect to database")

    # 第二步：初始化数据库表结构（创建尚不存在的表）
    await init_db()
    logger.info("Database initialized")

    # 第三步：启动后台定时任务调度器（过期验证码清理）
    if settings.scheduler_enabled:
        await start_scheduler()
        logger.info("Scheduler started")

    logger.info("SEOMaster started successfully")

    yield

    # ======================== 关闭阶段 ========================
    logger.info("Shutting down SEOMaster...")
    # 等待已分派的分析任务落地结果
    await get_dispatcher().drain(timeout=SHUTDOWN_DRAIN_TIMEOUT)
    await stop_scheduler()
    # 关闭数据库连接池，释放所有连接资源
    await close_db()
    logger.info("SEOMaster shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description="White-label SEO report service",
    version="0.1.0",
    lifespan=lifespan,
)

# 添加 CORS（跨域资源共享）中间件
# 注意: allow_origins=["*"] 时不应启用 allow_credentials=True
_cors_origins = settings.cors_origins.split(",") if settings.cors_origins != "*" else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


# 请求体 / 查询参数校验失败统一返回 400
# detail 保留 pydantic 的错误列表，便于前端定位字段
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Rejected invalid request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": _jsonable_errors(exc)},
    )


def _jsonable_errors(exc: RequestValidationError) -> list:
    """Strip non-serializable context (e.g. exception objects) from errors."""
    errors = []
    for error in exc.errors():
        item = {k: v for k, v in error.items() if k in ("type", "loc", "msg")}
        errors.append(item)
    return errors


# 全局异常处理器
# 捕获所有未处理的异常，防止敏感错误信息泄露给客户端
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# =============================================================================
# 路由注册
# =============================================================================
app.include_router(auth_router, prefix="/api")
app.include_router(report_router, prefix="/api")


# 健康检查端点
# 用于容器编排和负载均衡器的健康探测
@app.get("/health")
async def health_check():
    """Health check endpoint with component status.

    数据库必须正常；Redis 为可选组件（未配置时视为正常）。
    """
    db_ok = await check_db_connection()
    redis_ok = await _check_redis_connection()

    return {
        "status": "healthy" if db_ok else "unhealthy",
        "components": {
            "database": "connected" if db_ok else "disconnected",
            "redis": "connected" if redis_ok else "disconnected",
        },
        "analysis": {"inFlight": get_dispatcher().in_flight},
    }


@app.get("/health/live")
async def liveness_check():
    """Liveness probe."""
    return {"status": "alive"}


@app.get("/health/ready")
async def readiness_check():
    """Readiness probe. The database must be reachable."""
    if not await check_db_connection():
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database not ready")
    return {"status": "ready"}


async def _check_redis_connection() -> bool:
    """Return True if Redis answers a ping or is not configured."""
    if not settings.redis_available:
        return True
    import redis.asyncio as redis
    client = redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password or None,
        db=settings.redis_db,
        socket_connect_timeout=5,
    )
    try:
        await client.ping()
        return True
    except (redis.RedisError, OSError) as e:
        logger.warning(f"Redis health check failed: {e}")
        return False
    finally:
        await client.aclose()


def run() -> None:
    """Entry point for the ``seomaster`` console script (see pyproject.toml)."""
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Run SEOMaster server")
    parser.add_argument("--host", type=str, default=None, help="Host to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    args = parser.parse_args()

    # 优先使用命令行参数，其次使用 settings 配置
    host = args.host or settings.app_host
    port = args.port or settings.app_port
    reload = args.reload or settings.debug

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    run()

# =============================================================================
# 模块: common/logger.py
# 功能: 日志系统初始化的便捷封装
# 架构角色: 作为日志配置的入口，封装 config_loader 中的 YAML 日志配置逻辑，
#   为应用启动时提供简洁的日志初始化接口。
# =============================================================================
"""Logging setup for SEOMaster.

Uses YAML-based configuration from /config/logging.yaml with optional
runtime overrides for log level and log file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from common.config_loader import setup_logging_from_yaml


def setup_logging(debug: bool = False, log_file: Optional[Path] = None) -> None:
    """Setup logging using YAML config with optional overrides.

    使用 YAML 配置文件初始化日志系统。debug 为 True 时根日志级别为 DEBUG。

    Args:
        debug: Whether to lower the root logger level to DEBUG.
        log_file: Override the file handler's filename (optional).
    """
    setup_logging_from_yaml(
        log_level_override="DEBUG" if debug else "INFO",
        log_file_override=log_file,
    )

# =============================================================================
# 模块: settings.py
# 功能: SEOMaster 的全局应用配置模块
# 架构角色: 作为整个应用的配置中枢，提供统一的配置管理。
#   采用分层配置优先级机制，从高到低依次为：
#   1. 环境变量（运行时覆盖，适用于容器化部署）
#   2. .env 文件（存放敏感信息如密码、API密钥）
#   3. config/defaults.yaml（非敏感默认值）
#   4. Python 代码中的硬编码默认值（兜底方案）
#
# 设计决策:
#   - 使用 pydantic-settings 的 BaseSettings 实现类型安全的配置
#   - YAML 文件在模块加载时一次性读取并缓存到模块级变量中
#   - validation_alias 用于将大写的环境变量名映射到小写的 Python 属性名
#   - 敏感信息（数据库密码、JWT密钥、分析服务 API 密钥等）不在 YAML 中设默认值
# =============================================================================
"""Global application settings for SEOMaster.

Configuration precedence (highest to lowest):
1. Environment variables (runtime override)
2. .env file (secrets)
3. config/defaults.yaml (non-sensitive defaults)
4. Hardcoded Python defaults (fallback)
"""

from __future__ import annotations

import secrets
from pathlib import Path

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# 项目根目录（settings.py 所在目录）
BASE_DIR = Path(__file__).resolve().parent
# 配置文件目录
CONFIG_DIR = BASE_DIR / "config"


def load_yaml_config() -> dict:
    """Load configuration from defaults.yaml.

    从 YAML 配置文件加载默认配置。
    如果文件不存在则返回空字典，不会抛出异常。

    返回值:
        dict: YAML 文件内容解析后的字典，文件不存在或为空时返回 {}
    """
    config_path = CONFIG_DIR / "defaults.yaml"
    if not config_path.exists():
        return {}
    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


# 模块加载时一次性读取 YAML 配置并缓存
_yaml_config = load_yaml_config()
_app_config = _yaml_config.get("app", {})                # 应用基本配置
_db_config = _yaml_config.get("database", {})             # 数据库配置
_jwt_config = _yaml_config.get("jwt", {})                 # JWT 认证配置
_email_config = _yaml_config.get("email", {})             # 邮件服务配置
_otp_config = _yaml_config.get("otp", {})                 # 一次性验证码配置
_analysis_config = _yaml_config.get("analysis", {})       # 外部分析服务配置
_report_config = _yaml_config.get("reports", {})          # 报告模块配置
_poller_config = _yaml_config.get("poller", {})           # 客户端轮询配置
_scheduler_config = _yaml_config.get("scheduler", {})     # 定时任务调度配置


class Settings(BaseSettings):
    """Global application settings."""

    # ======================== 应用基本配置 ========================
    app_name: str = Field(
        default=_app_config.get("name", "SEOMaster"),
        validation_alias="APP_NAME",
    )
    debug: bool = Field(
        default=_app_config.get("debug", False),
        validation_alias="DEBUG",
    )
    app_host: str = Field(
        default=_app_config.get("host", "0.0.0.0"),
        validation_alias="APP_HOST",
    )
    app_port: int = Field(
        default=_app_config.get("port", 8000),
        validation_alias="APP_PORT",
    )
    cors_origins: str = Field(
        default=_app_config.get("cors_origins", "*"),
        validation_alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(
        default=_app_config.get("cors_allow_credentials", False),
        validation_alias="CORS_ALLOW_CREDENTIALS",
    )

    # ======================== 数据库配置 ========================
    db_host: str = Field(
        default="localhost",
        validation_alias="DB_HOST",
    )
    db_port: int = Field(
        default=3306,
        validation_alias="DB_PORT",
    )
    db_name: str = Field(
        default="seomaster",
        validation_alias="DB_NAME",
    )
    db_user: str = Field(
        default="seomaster",
        validation_alias="DB_USER",
    )
    db_password: str = Field(
        default="",
        validation_alias="DB_PASSWORD",
    )
    db_pool_size: int = Field(
        default=_db_config.get("pool_size", 10),
        validation_alias="DB_POOL_SIZE",
    )
    db_max_overflow: int = Field(
        default=_db_config.get("max_overflow", 20),
        validation_alias="DB_MAX_OVERFLOW",
    )
    db_pool_recycle: int = Field(
        default=_db_config.get("pool_recycle", 3600),
        validation_alias="DB_POOL_RECYCLE",
    )
    db_echo: bool = Field(
        default=_db_config.get("echo", False),
        validation_alias="DB_ECHO",
    )

    # ======================== Redis 缓存配置 ========================
    redis_host: str = Field(
        default="",
        validation_alias="REDIS_HOST",
    )
    redis_port: int = Field(
        default=6379,
        validation_alias="REDIS_PORT",
    )
    redis_password: str = Field(
        default="",
        validation_alias="REDIS_PASSWORD",
    )
    redis_db: int = Field(
        default=0,
        validation_alias="REDIS_DB",
    )
    # ======================== JWT 配置 ========================
    jwt_secret_key: str = Field(
        default="",
        validation_alias="JWT_SECRET_KEY",
        validate_default=True,
    )
    jwt_algorithm: str = Field(
        default=_jwt_config.get("algorithm", "HS256"),
        validation_alias="JWT_ALGORITHM",
    )
    # 登录令牌有效期，原产品为 7 天
    jwt_access_token_expire_minutes: int = Field(
        default=_jwt_config.get("access_token_expire_minutes", 10080),
        validation_alias="JWT_ACCESS_TOKEN_EXPIRE_MINUTES",
    )
    jwt_verification_token_expire_minutes: int = Field(
        default=_jwt_config.get("verification_token_expire_minutes", 60),
        validation_alias="JWT_VERIFICATION_TOKEN_EXPIRE_MINUTES",
    )
    jwt_reset_token_expire_minutes: int = Field(
        default=_jwt_config.get("reset_token_expire_minutes", 15),
        validation_alias="JWT_RESET_TOKEN_EXPIRE_MINUTES",
    )

    # ======================== 邮件配置 ========================
    email_enabled: bool = Field(
        default=_email_config.get("enabled", False),
        validation_alias="EMAIL_ENABLED",
    )
    email_from: str = Field(
        default=_email_config.get("from", ""),
        validation_alias="EMAIL_FROM",
    )
    smtp_host: str = Field(
        default=_email_config.get("smtp", {}).get("host", ""),
        validation_alias="SMTP_HOST",
    )
    smtp_port: int = Field(
        default=_email_config.get("smtp", {}).get("port", 587),
        validation_alias="SMTP_PORT",
    )
    smtp_user: str = Field(
        default=_email_config.get("smtp", {}).get("user", ""),
        validation_alias="SMTP_USER",
    )
    smtp_password: str = Field(
        default="",
        validation_alias="SMTP_PASSWORD",
    )
    smtp_timeout: float = Field(
        default=_email_config.get("smtp", {}).get("timeout", 10.0),
        validation_alias="SMTP_TIMEOUT",
    )
    smtp_retries: int = Field(
        default=_email_config.get("smtp", {}).get("retries", 3),
        validation_alias="SMTP_RETRIES",
    )
    smtp_retry_backoff: float = Field(
        default=_email_config.get("smtp", {}).get("retry_backoff", 2.0),
        validation_alias="SMTP_RETRY_BACKOFF",
    )
    smtp_tls: bool = Field(
        default=_email_config.get("smtp", {}).get("tls", True),
        validation_alias="SMTP_TLS",
    )
    smtp_ssl: bool = Field(
        default=_email_config.get("smtp", {}).get("ssl", False),
        validation_alias="SMTP_SSL",
    )

    # ======================== OTP 验证码配置 ========================
    otp_expire_minutes: int = Field(
        default=_otp_config.get("expire_minutes", 10),
        validation_alias="OTP_EXPIRE_MINUTES",
    )
    otp_resend_interval_seconds: int = Field(
        default=_otp_config.get("resend_interval_seconds", 60),
        validation_alias="OTP_RESEND_INTERVAL_SECONDS",
    )

    # ======================== 外部分析服务配置 ========================
    analysis_backend_url: str = Field(
        default=_analysis_config.get("backend_url", "http://localhost:4000"),
        validation_alias="BACKEND_URL",
    )
    analysis_api_key: str = Field(
        default="",
        validation_alias="BACKEND_API_KEY",
    )
    analysis_timeout: float = Field(
        default=_analysis_config.get("timeout", 300.0),
        validation_alias="ANALYSIS_TIMEOUT",
    )

    # ======================== 报告配置 ========================
    report_list_limit: int = Field(
        default=_report_config.get("list_limit", 100),
        validation_alias="REPORT_LIST_LIMIT",
    )
    report_public_cache_max_age: int = Field(
        default=_report_config.get("public_cache_max_age", 3600),
        validation_alias="REPORT_PUBLIC_CACHE_MAX_AGE",
    )

    # ======================== 客户端轮询配置 ========================
    poller_interval_seconds: float = Field(
        default=_poller_config.get("interval_seconds", 2.0),
        validation_alias="POLLER_INTERVAL_SECONDS",
    )
    poller_max_attempts: int = Field(
        default=_poller_config.get("max_attempts", 60),
        validation_alias="POLLER_MAX_ATTEMPTS",
    )

    # ======================== 调度器配置 ========================
    scheduler_enabled: bool = Field(
        default=_scheduler_config.get("enabled", True),
        validation_alias="SCHEDULER_ENABLED",
    )
    scheduler_timezone: str = Field(
        default=_scheduler_config.get("timezone", "UTC"),
        validation_alias="SCHEDULER_TIMEZONE",
    )
    otp_cleanup_interval_minutes: int = Field(
        default=_scheduler_config.get("otp_cleanup_interval_minutes", 60),
        validation_alias="OTP_CLEANUP_INTERVAL_MINUTES",
    )

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("jwt_secret_key", mode="before")
    @classmethod
    def generate_jwt_secret_if_empty(cls, v: str) -> str:
        """Generate a random JWT secret if not provided.

        JWT 密钥验证器：如果未提供有效的密钥，则自动生成一个随机密钥。
        注意：自动生成的密钥在每次应用重启时都会变化，之前签发的所有 Token 将会失效。
        """
        if not v or v == "your_jwt_secret_key_here":
            return secrets.token_urlsafe(32)
        return v

    @field_validator("analysis_backend_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the analysis backend URL (no trailing slash)."""
        return v.rstrip("/")

    @property
    def database_url(self) -> str:
        """Build async MySQL database URL.

        构建异步 MySQL 连接 URL，使用 aiomysql 驱动。
        密码经过 URL 编码以处理特殊字符。
        """
        from urllib.parse import quote_plus
        encoded_password = quote_plus(self.db_password)
        return (
            f"mysql+aiomysql://{self.db_user}:{encoded_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @property
    def redis_available(self) -> bool:
        """Check if Redis is configured."""
        return bool(self.redis_host)


settings = Settings()

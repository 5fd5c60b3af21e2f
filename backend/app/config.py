"""
应用配置
从环境变量（及 .env 文件）读取配置
"""
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用设置"""

    # 应用基础配置
    APP_NAME: str = "CronHook"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8899
    LOG_LEVEL: str = "INFO"

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./cronhook.db"

    # 调度配置
    SCHEDULER_TIMEZONE: Optional[str] = None  # None 表示使用本机时区
    MISFIRE_GRACE_SECONDS: int = 1

    # 请求分发配置
    DEFAULT_TIMEOUT_SECONDS: int = 10
    DISPATCH_MAX_WORKERS: int = 32

    # 任务列表中每个任务附带的最近执行记录条数
    LOG_PREVIEW_LIMIT: int = 5

    model_config = ConfigDict(env_file=".env", case_sensitive=True)


# 全局设置实例
settings = Settings()

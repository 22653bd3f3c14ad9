"""运行配置

数据库、日志、通知开关从 .env 或环境变量读取（不区分大小写），
缺省时使用下面的默认值。.env 可由 scripts/setup_env.py 生成。
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用配置 - 所有字段均可通过 .env 或环境变量覆盖"""

    # ========== 数据库 ==========
    database_url: str = "sqlite:///data/events.db"
    database_echo: bool = False

    # ========== 日志 ==========
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # ========== 通知 ==========
    notifications_enabled: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# 全局配置实例
settings = Settings()

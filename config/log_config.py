"""日志配置

统一使用 loguru。入口脚本调用 setup_logging() 安装输出目标，
库代码只负责 ``from loguru import logger`` 后直接记录。
"""
import sys
from typing import Optional

from loguru import logger

from config.settings import settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | <level>{message}</level>"
)


def setup_logging(level: Optional[str] = None,
                  log_file: Optional[str] = None) -> None:
    """配置 loguru 日志输出。

    移除默认输出，安装标准输出；如配置了日志文件则追加按大小轮转的文件输出。

    Args:
        level: 日志级别，默认使用 settings.log_level。
        log_file: 日志文件路径，默认使用 settings.log_file。
    """
    level = (level or settings.log_level).upper()
    log_file = log_file or settings.log_file

    logger.remove()
    logger.add(sys.stdout, format=LOG_FORMAT, level=level)
    if log_file:
        logger.add(
            log_file,
            format=LOG_FORMAT,
            level=level,
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
        )

"""
网关配置管理
统一管理所有配置项，支持环境变量覆盖（前缀 SQLGATE_）
"""

import logging
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings

# 项目根目录的绝对路径
PROJECT_DIR = Path(__file__).parent.parent.parent.resolve()
ENV_FILE = PROJECT_DIR / ".env"

# 默认黑名单（大小写不敏感）
DEFAULT_BLACKLIST = ["DROP", "DELETE", "--", "#", "/*", "xp_", ";"]


class Settings(BaseSettings):
    """网关配置"""

    # 应用信息
    app_name: str = "sqlgate"
    debug: bool = False

    # 错误输出
    echo_uncaught_errors: bool = False  # 是否输出未捕获错误的详细信息，默认关闭以免泄露
    expose_driver_errors: bool = False  # 是否在 QueryExecutionFailed 中携带驱动原始错误信息

    # 语句安全
    default_blacklist: List[str] = list(DEFAULT_BLACKLIST)

    # 连接配置
    autocommit: bool = True  # 与多数驱动的默认行为一致：每条语句自动提交
    pool_pre_ping: bool = True

    # 导出 / 渲染
    export_dir: str = ""
    html_page_query_name: str = "pg"
    max_page_size: int = 1000

    # 日志
    log_level: str = "INFO"

    class Config:
        env_prefix = "SQLGATE_"
        env_file = str(ENV_FILE)
        env_file_encoding = "utf-8"
        extra = "ignore"


_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """
    获取配置单例
    支持运行时重新加载
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()

        if _settings_instance.expose_driver_errors and not _settings_instance.debug:
            logging.getLogger(__name__).warning(
                "[安全警告] 非调试模式下开启了 expose_driver_errors，驱动错误详情可能泄露表结构信息"
            )
    return _settings_instance


def reload_settings() -> Settings:
    """重新加载配置（环境变量变化后调用）"""
    global _settings_instance
    _settings_instance = Settings()
    return _settings_instance


def configure_logging(level: Optional[str] = None) -> None:
    """
    配置日志

    仅供宿主程序在入口处调用，库内部只使用模块级 logger
    """
    logging.basicConfig(
        level=getattr(logging, (level or get_settings().log_level).upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s"
    )

    # 减少第三方库的日志输出
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)

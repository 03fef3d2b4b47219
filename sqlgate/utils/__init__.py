"""
工具函数目录
按功能分类组织
"""

from .sql_safety import (
    BlacklistStore,
    check_identifier,
    is_safe_identifier,
    scan_statement,
    strip_literals,
)

__all__ = [
    # 语句安全
    "BlacklistStore",
    "check_identifier",
    "is_safe_identifier",
    "scan_statement",
    "strip_literals",
]

"""
sqlgate - 受保护的 SQL 执行层
在预处理语句驱动之前做标识符白名单、黑名单子句扫描和统一错误分类
"""

__version__ = "3.2.0"

from .core import (
    StatementGate,
    Connection,
    BindValue,
    FetchMode,
    RowSet,
    ErrorCode,
    GateException,
    ConnectionFailed,
    BlacklistedClause,
    PermissionDenied,
    ColumnPermissionDenied,
    TablePermissionDenied,
    QueryExecutionFailed,
    PaginationInvalid,
    ConnectionClosed,
    ErrorReporter,
    reporter,
    get_settings,
)
from .utils import BlacklistStore, is_safe_identifier
from .utils import dsn

__all__ = [
    "__version__",
    "StatementGate",
    "Connection",
    "BindValue",
    "FetchMode",
    "RowSet",
    "ErrorCode",
    "GateException",
    "ConnectionFailed",
    "BlacklistedClause",
    "PermissionDenied",
    "ColumnPermissionDenied",
    "TablePermissionDenied",
    "QueryExecutionFailed",
    "PaginationInvalid",
    "ConnectionClosed",
    "ErrorReporter",
    "reporter",
    "get_settings",
    "BlacklistStore",
    "is_safe_identifier",
    "dsn",
]

"""
sqlgate 核心模块
提供网关的基础设施

导出列表：
- 配置管理: get_settings, reload_settings, Settings, configure_logging
- 错误处理: ErrorCode, GateException 及各分类异常, ErrorReporter, reporter
- 数据库: Connection, RowSet, BindValue, FetchMode
- 网关: StatementGate
- 分页工具: PaginationParams, PageResult, Paginator
"""

# 配置管理
from .config import get_settings, reload_settings, Settings, configure_logging

# 错误处理
from .errors import (
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
    register_exception_handlers,
    translate_driver_errors,
)

# 数据库
from .database import Connection, PreparedStatement, RowSet, BindValue, FetchMode

# 网关
from .gate import StatementGate

# 分页工具
from .pagination import PaginationParams, PageResult, Paginator, build_page_url

"""
标准错误码体系
提供统一的错误码定义、分类异常、驱动错误转换和未捕获错误输出

错误不会携带原始堆栈；驱动错误默认只给出通用提示，
原始异常通过 __cause__ 链保留并以 DEBUG 级别写入日志。
"""

import logging
import sys
from contextlib import contextmanager
from enum import IntEnum
from typing import Any, Dict, Iterator, Optional, Type

from fastapi import status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .config import get_settings

logger = logging.getLogger(__name__)


class ErrorCode(IntEnum):
    """
    标准错误码

    - 0: 成功
    - 1-7: 网关分类错误
    """

    SUCCESS = 0

    CONNECTION_FAILED = 1           # 连接失败
    BLACKLISTED_CLAUSE = 2          # 语句包含黑名单子句
    COLUMN_PERMISSION_DENIED = 3    # 列不在白名单中
    TABLE_PERMISSION_DENIED = 4     # 表不在白名单中
    QUERY_EXECUTION_FAILED = 5      # 查询执行失败
    PAGINATION_INVALID = 6          # 分页参数不合法
    CONNECTION_CLOSED = 7           # 连接已关闭


# 错误码对应的默认消息
ERROR_MESSAGES: Dict[int, str] = {
    ErrorCode.SUCCESS: "操作成功",
    ErrorCode.CONNECTION_FAILED: "无法连接数据库，请检查连接参数",
    ErrorCode.BLACKLISTED_CLAUSE: "查询语句包含黑名单中的子句",
    ErrorCode.COLUMN_PERMISSION_DENIED: "没有权限查询语句中的某一列",
    ErrorCode.TABLE_PERMISSION_DENIED: "没有权限查询语句中的某张表",
    ErrorCode.QUERY_EXECUTION_FAILED: "查询执行失败",
    ErrorCode.PAGINATION_INVALID: "分页语句不能包含 LIMIT 或 OFFSET 子句",
    ErrorCode.CONNECTION_CLOSED: "数据库连接已关闭",
}

# 错误码对应的 HTTP 状态码（供 FastAPI 宿主使用）
ERROR_HTTP_STATUS: Dict[int, int] = {
    ErrorCode.SUCCESS: status.HTTP_200_OK,
    ErrorCode.CONNECTION_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.BLACKLISTED_CLAUSE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.COLUMN_PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorCode.TABLE_PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorCode.QUERY_EXECUTION_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.PAGINATION_INVALID: status.HTTP_400_BAD_REQUEST,
    ErrorCode.CONNECTION_CLOSED: status.HTTP_409_CONFLICT,
}


class GateException(Exception):
    """
    网关异常基类

    所有分类错误都携带错误码和可读消息

    Usage:
        raise GateException(ErrorCode.QUERY_EXECUTION_FAILED)
        raise BlacklistedClause(data={"token": "DROP"})
    """

    default_code: Optional[int] = ErrorCode.QUERY_EXECUTION_FAILED

    def __init__(
        self,
        code: Optional[int] = None,
        message: Optional[str] = None,
        data: Any = None
    ):
        if code is None:
            code = self.default_code
        if code is None:
            raise TypeError(f"{type(self).__name__} 没有默认错误码，必须显式指定 code")
        self.code = code
        self.message = message or ERROR_MESSAGES.get(self.code, "未知错误")
        self.data = data
        self.http_status = ERROR_HTTP_STATUS.get(self.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{type(self).__name__}: [{self.code}]: {self.message}"

    def to_response(self) -> JSONResponse:
        """转换为 JSONResponse"""
        return JSONResponse(
            status_code=self.http_status,
            content=self.to_dict()
        )

    def to_dict(self) -> dict:
        """转换为字典"""
        return {
            "code": int(self.code),
            "message": self.message,
            "data": self.data
        }


class ConnectionFailed(GateException):
    """连接失败"""
    default_code = ErrorCode.CONNECTION_FAILED


class BlacklistedClause(GateException):
    """语句包含黑名单子句"""
    default_code = ErrorCode.BLACKLISTED_CLAUSE


class PermissionDenied(GateException):
    """
    标识符不在白名单中

    只作为列、表权限异常的公共父类捕获使用；直接实例化时必须指定错误码
    """
    default_code = None


class ColumnPermissionDenied(PermissionDenied):
    """列权限异常"""
    default_code = ErrorCode.COLUMN_PERMISSION_DENIED


class TablePermissionDenied(PermissionDenied):
    """表权限异常"""
    default_code = ErrorCode.TABLE_PERMISSION_DENIED


class QueryExecutionFailed(GateException):
    """查询执行失败"""
    default_code = ErrorCode.QUERY_EXECUTION_FAILED


class PaginationInvalid(GateException):
    """分页参数异常"""
    default_code = ErrorCode.PAGINATION_INVALID


class ConnectionClosed(GateException):
    """连接已关闭"""
    default_code = ErrorCode.CONNECTION_CLOSED


# ==================== 驱动错误转换 ====================

def driver_error(
    exc: BaseException,
    error_cls: Type[GateException] = QueryExecutionFailed,
    expose: Optional[bool] = None
) -> GateException:
    """
    将驱动异常转换为分类异常

    默认只返回通用消息；expose 为真时附带驱动原始信息，
    expose 为 None 时取全局配置 expose_driver_errors
    """
    logger.debug(f"驱动错误 ({type(exc).__name__}): {exc}")

    if expose is None:
        expose = get_settings().expose_driver_errors
    if expose:
        base = ERROR_MESSAGES.get(error_cls.default_code, "未知错误")
        return error_cls(message=f"{base}: {exc}")
    return error_cls()


@contextmanager
def translate_driver_errors(
    error_cls: Type[GateException] = QueryExecutionFailed,
    expose: Optional[bool] = None
) -> Iterator[None]:
    """
    在上下文中把 SQLAlchemy 异常转换为分类异常

    Usage:
        with translate_driver_errors(expose=settings.expose_driver_errors):
            result = connection.execute(text(sql))
    """
    try:
        yield
    except SQLAlchemyError as e:
        raise driver_error(e, error_cls, expose) from e


# ==================== 未捕获错误输出 ====================

UNCAUGHT_PREFIX = "[Uncaught sqlgate error]"
UNCAUGHT_NOTICE = "如需查看未捕获错误的详细信息，请将 ErrorReporter.echo_uncaught_errors 设置为 True"


class ErrorReporter:
    """
    未捕获错误报告器

    库本身不安装任何全局处理器；宿主程序可以自行安装 excepthook，
    或在 FastAPI 应用上调用 register_exception_handlers。
    """

    def __init__(self, echo_uncaught_errors: Optional[bool] = None):
        if echo_uncaught_errors is None:
            echo_uncaught_errors = get_settings().echo_uncaught_errors
        self.echo_uncaught_errors = echo_uncaught_errors

    def public_message(self, exc: BaseException) -> str:
        """对外可见的错误消息"""
        if self.echo_uncaught_errors:
            if isinstance(exc, GateException):
                return exc.message
            return str(exc)
        return UNCAUGHT_NOTICE

    def format_uncaught(self, exc: BaseException) -> str:
        """格式化未捕获错误"""
        return f"{UNCAUGHT_PREFIX}: {self.public_message(exc)}"

    def report_uncaught(self, exc: BaseException, stream=None) -> None:
        """将未捕获错误写入输出流（默认 stderr）"""
        stream = stream or sys.stderr
        stream.write(self.format_uncaught(exc) + "\n")

    def excepthook(self, exc_type, exc, tb) -> None:
        """
        可供宿主安装的 sys.excepthook

        Usage:
            sys.excepthook = reporter.excepthook
        """
        logger.debug("未捕获异常", exc_info=(exc_type, exc, tb))
        self.report_uncaught(exc)


# 进程级默认报告器
reporter = ErrorReporter()


# ==================== 异常处理器 ====================

async def gate_exception_handler(request, exc: GateException):
    """GateException 异常处理器：按错误码返回"""
    return exc.to_response()


def register_exception_handlers(app, error_reporter: Optional[ErrorReporter] = None):
    """
    在 FastAPI 应用上注册异常处理器

    分类异常按错误码返回；其他异常按报告器的开关决定是否输出详情

    Usage:
        from sqlgate.core.errors import register_exception_handlers
        register_exception_handlers(app)
    """
    error_reporter = error_reporter or reporter

    app.add_exception_handler(GateException, gate_exception_handler)

    @app.exception_handler(Exception)
    async def handle_uncaught(request, exc: Exception):
        logger.error(f"未捕获异常: {type(exc).__name__}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "code": -1,
                "message": error_reporter.format_uncaught(exc),
                "data": None
            }
        )

"""
错误码体系测试
"""

import io

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from sqlgate.core.config import reload_settings
from sqlgate.core.errors import (
    ERROR_HTTP_STATUS,
    ERROR_MESSAGES,
    UNCAUGHT_NOTICE,
    UNCAUGHT_PREFIX,
    BlacklistedClause,
    ColumnPermissionDenied,
    ConnectionClosed,
    ConnectionFailed,
    ErrorCode,
    ErrorReporter,
    GateException,
    PaginationInvalid,
    PermissionDenied,
    QueryExecutionFailed,
    TablePermissionDenied,
    driver_error,
    gate_exception_handler,
    register_exception_handlers,
    translate_driver_errors,
)


def _operational_error(msg="no such table: secret_tbl"):
    return OperationalError("SELECT * FROM secret_tbl", {}, Exception(msg))


class TestErrorCodes:
    """错误码测试"""

    def test_codes_are_stable(self):
        """测试错误码取值"""
        assert ErrorCode.CONNECTION_FAILED == 1
        assert ErrorCode.BLACKLISTED_CLAUSE == 2
        assert ErrorCode.COLUMN_PERMISSION_DENIED == 3
        assert ErrorCode.TABLE_PERMISSION_DENIED == 4
        assert ErrorCode.QUERY_EXECUTION_FAILED == 5
        assert ErrorCode.PAGINATION_INVALID == 6
        assert ErrorCode.CONNECTION_CLOSED == 7

    def test_every_code_has_message_and_status(self):
        """测试每个错误码都有消息和 HTTP 状态"""
        for code in ErrorCode:
            assert code in ERROR_MESSAGES
            assert code in ERROR_HTTP_STATUS

    def test_exception_default_codes(self):
        """测试各分类异常的默认错误码"""
        assert ConnectionFailed().code == 1
        assert BlacklistedClause().code == 2
        assert ColumnPermissionDenied().code == 3
        assert TablePermissionDenied().code == 4
        assert QueryExecutionFailed().code == 5
        assert PaginationInvalid().code == 6
        assert ConnectionClosed().code == 7

    def test_hierarchy(self):
        """测试异常继承关系"""
        assert issubclass(ColumnPermissionDenied, PermissionDenied)
        assert issubclass(TablePermissionDenied, PermissionDenied)
        for cls in (ConnectionFailed, BlacklistedClause, PermissionDenied,
                    QueryExecutionFailed, PaginationInvalid, ConnectionClosed):
            assert issubclass(cls, GateException)


class TestGateException:
    """网关异常测试"""

    def test_str_format(self):
        """测试字符串形式为 类名: [错误码]: 消息"""
        exc = BlacklistedClause()
        assert str(exc) == f"BlacklistedClause: [2]: {ERROR_MESSAGES[ErrorCode.BLACKLISTED_CLAUSE]}"

    def test_custom_message(self):
        """测试自定义消息"""
        exc = PaginationInvalid(message="每页数量必须在 1 到 10 之间")
        assert exc.message == "每页数量必须在 1 到 10 之间"
        assert exc.code == 6

    def test_to_dict(self):
        """测试转换为字典"""
        exc = BlacklistedClause(data={"token": "DROP"})
        assert exc.to_dict() == {
            "code": 2,
            "message": ERROR_MESSAGES[ErrorCode.BLACKLISTED_CLAUSE],
            "data": {"token": "DROP"},
        }

    def test_to_response(self):
        """测试转换为 JSONResponse"""
        response = TablePermissionDenied().to_response()
        assert response.status_code == 403

    def test_permission_denied_requires_code(self):
        """测试权限异常父类没有默认错误码，不会冒充列权限错误"""
        with pytest.raises(TypeError):
            PermissionDenied()
        exc = PermissionDenied(ErrorCode.TABLE_PERMISSION_DENIED)
        assert exc.code == 4
        assert exc.http_status == 403


class TestDriverError:
    """驱动错误转换测试"""

    def test_sanitised_by_default(self):
        """测试默认不泄露驱动错误详情"""
        exc = driver_error(_operational_error())
        assert isinstance(exc, QueryExecutionFailed)
        assert "secret_tbl" not in exc.message
        assert exc.message == ERROR_MESSAGES[ErrorCode.QUERY_EXECUTION_FAILED]

    def test_exposed_when_enabled(self, monkeypatch):
        """测试开启后携带驱动错误详情"""
        monkeypatch.setenv("SQLGATE_EXPOSE_DRIVER_ERRORS", "true")
        reload_settings()
        exc = driver_error(_operational_error())
        assert exc.message.startswith(ERROR_MESSAGES[ErrorCode.QUERY_EXECUTION_FAILED])
        assert "secret_tbl" in exc.message

    def test_explicit_flag_overrides_settings(self, monkeypatch):
        """测试显式传入的开关优先于全局配置"""
        assert "secret_tbl" in driver_error(_operational_error(), expose=True).message

        monkeypatch.setenv("SQLGATE_EXPOSE_DRIVER_ERRORS", "true")
        reload_settings()
        assert "secret_tbl" not in driver_error(_operational_error(), expose=False).message

    def test_translate_context_passes_flag(self):
        """测试上下文转换使用传入的开关"""
        with pytest.raises(QueryExecutionFailed) as exc:
            with translate_driver_errors(QueryExecutionFailed, expose=True):
                raise _operational_error()
        assert "secret_tbl" in exc.value.message

    def test_error_class(self):
        """测试按指定类型转换"""
        exc = driver_error(_operational_error("refused"), ConnectionFailed)
        assert isinstance(exc, ConnectionFailed)
        assert exc.code == 1

    def test_translate_context_keeps_cause(self):
        """测试上下文转换保留原始异常"""
        original = _operational_error()
        with pytest.raises(QueryExecutionFailed) as exc:
            with translate_driver_errors():
                raise original
        assert exc.value.__cause__ is original

    def test_translate_context_ignores_other_errors(self):
        """测试非驱动异常原样抛出"""
        with pytest.raises(KeyError):
            with translate_driver_errors():
                raise KeyError("x")


class TestErrorReporter:
    """未捕获错误报告器测试"""

    def test_silent_by_default(self):
        """测试默认只输出提示"""
        text = ErrorReporter().format_uncaught(QueryExecutionFailed())
        assert text == f"{UNCAUGHT_PREFIX}: {UNCAUGHT_NOTICE}"

    def test_echo_enabled(self):
        """测试开启后输出错误消息"""
        r = ErrorReporter(echo_uncaught_errors=True)
        assert r.format_uncaught(ConnectionClosed()) == (
            f"{UNCAUGHT_PREFIX}: {ERROR_MESSAGES[ErrorCode.CONNECTION_CLOSED]}"
        )
        assert r.format_uncaught(RuntimeError("boom")) == f"{UNCAUGHT_PREFIX}: boom"

    def test_setting_controls_default(self, monkeypatch):
        """测试默认开关取自配置"""
        monkeypatch.setenv("SQLGATE_ECHO_UNCAUGHT_ERRORS", "true")
        reload_settings()
        assert ErrorReporter().echo_uncaught_errors is True

    def test_report_uncaught_writes_stream(self):
        """测试写入输出流"""
        stream = io.StringIO()
        ErrorReporter(echo_uncaught_errors=True).report_uncaught(BlacklistedClause(), stream)
        assert stream.getvalue().startswith(UNCAUGHT_PREFIX)
        assert stream.getvalue().endswith("\n")

    def test_excepthook(self, capsys):
        """测试 excepthook 写入 stderr"""
        exc = RuntimeError("hidden detail")
        ErrorReporter(echo_uncaught_errors=False).excepthook(RuntimeError, exc, None)
        err = capsys.readouterr().err
        assert UNCAUGHT_NOTICE in err
        assert "hidden detail" not in err


class TestExceptionHandlers:
    """FastAPI 异常处理器测试"""

    async def test_gate_exception_handler(self):
        """测试异常处理器返回错误码对应的响应"""
        response = await gate_exception_handler(None, ColumnPermissionDenied())
        assert response.status_code == 403

    def _client(self, reporter):
        app = FastAPI()
        register_exception_handlers(app, reporter)

        @app.get("/blocked")
        async def blocked():
            raise BlacklistedClause(data={"token": "DROP"})

        @app.get("/boom")
        async def boom():
            raise RuntimeError("internal detail")

        return TestClient(app, raise_server_exceptions=False)

    def test_registers_shared_handler(self):
        """测试注册的分类异常处理器就是 gate_exception_handler"""
        app = FastAPI()
        register_exception_handlers(app, ErrorReporter(False))
        assert app.exception_handlers[GateException] is gate_exception_handler

    def test_gate_exception(self):
        """测试分类异常按错误码返回"""
        response = self._client(ErrorReporter(False)).get("/blocked")
        assert response.status_code == 400
        assert response.json()["code"] == 2
        assert response.json()["data"] == {"token": "DROP"}

    def test_uncaught_hidden(self):
        """测试未捕获异常默认不输出详情"""
        response = self._client(ErrorReporter(False)).get("/boom")
        assert response.status_code == 500
        body = response.json()
        assert body["code"] == -1
        assert "internal detail" not in body["message"]
        assert body["message"].startswith(UNCAUGHT_PREFIX)

    def test_uncaught_echoed(self):
        """测试开启后输出详情"""
        response = self._client(ErrorReporter(True)).get("/boom")
        assert "internal detail" in response.json()["message"]

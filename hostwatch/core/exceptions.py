"""
全局异常处理模块 (Global Exception Handling Module)

定义对账引擎的异常分类和 FastAPI 全局异常处理器，提供统一的错误响应格式。

只有 ConfigurationError / TransportError / ProtocolError 会中止整次调用；
ProbeError 与 LookupGap 只降级单个主机或单个问题，不影响其他结果。

Defines the engine's error taxonomy and FastAPI global exception handlers.
Only configuration, transport and protocol errors abort a call; probe errors
and lookup gaps degrade a single host or problem.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ============================================================
# 业务异常类 (Business Exception Classes)
# ============================================================

class BusinessError(Exception):
    """业务异常基类 (Base Business Exception)"""
    status_code: int = 400
    error: str = "business_error"

    def __init__(self, message: str, detail: Optional[str] = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class ConfigurationError(BusinessError):
    """Zabbix 连接配置缺失或不完整 (Settings absent or incomplete)"""
    status_code = 400
    error = "configuration_error"


class RpcError(BusinessError):
    """监控服务器调用失败基类 (Monitoring server call failed)"""
    status_code = 502
    error = "rpc_error"


class TransportError(RpcError):
    """HTTP 层失败：连接不上、超时、非 2xx (HTTP-level failure)"""
    error = "transport_error"


class ProtocolError(RpcError):
    """服务器返回了 JSON-RPC error 对象 (Server reported a JSON-RPC error)"""
    error = "protocol_error"


class ProbeError(BusinessError):
    """本机无法执行可达性探测，例如缺少 ping 命令 (Probe could not be executed)"""
    status_code = 500
    error = "probe_error"


class LookupGap(BusinessError):
    """trigger → host 解析缺失 (Trigger to host resolution missing)"""
    status_code = 502
    error = "lookup_gap"


# ============================================================
# 错误响应 (Error Responses)
# ============================================================

def error_response(status_code: int, error: str, message: str, detail: Optional[str] = None) -> JSONResponse:
    """统一错误响应体：{error, message, detail, status_code}。"""
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "detail": detail, "status_code": status_code},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    挂载错误处理器 (Attach error handlers)

    - BusinessError：按子类的 status_code / error 输出；Zabbix 调用失败额外记一条 warning
    - HTTPException：沿用原状态码，包装为同一格式
    - 其他异常：500，记录完整堆栈
    """

    @app.exception_handler(BusinessError)
    async def business_error_handler(request: Request, exc: BusinessError) -> JSONResponse:
        if isinstance(exc, RpcError):
            logger.warning("Zabbix call failed on %s: %s", request.url.path, exc.message)
        return error_response(exc.status_code, exc.error, exc.message, exc.detail)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return error_response(exc.status_code, "http_error", str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(
            500,
            "internal_server_error",
            "服务内部错误 (Internal server error)",
        )

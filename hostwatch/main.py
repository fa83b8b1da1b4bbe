"""
hostwatch Web 应用入口 (hostwatch Web Application Entry)

创建 FastAPI 应用，注册全局异常处理器与 Zabbix 路由。
运行：uvicorn hostwatch.main:app
"""
from datetime import datetime, timezone

from fastapi import FastAPI

from hostwatch import __version__
from hostwatch.core.config import settings as app_settings
from hostwatch.core.exceptions import register_exception_handlers
from hostwatch.core.log import configure_logging
from hostwatch.routers import zabbix


def create_app() -> FastAPI:
    configure_logging(app_settings.log_level)

    application = FastAPI(
        title="hostwatch",
        description="Zabbix 主机可用性对账与指标提取 (Zabbix host availability reconciliation)",
        version=__version__,
    )
    register_exception_handlers(application)
    application.include_router(zabbix.router)

    @application.get("/health")
    async def health():
        """健康检查：只反映本服务自身，不访问 Zabbix。"""
        return {
            "status": "ok",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return application


app = create_app()

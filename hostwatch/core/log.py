"""日志初始化。CLI 与 Web 入口共用同一格式。"""
import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str | int = logging.INFO) -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # httpx 每个请求都会打 INFO，压到 WARNING
    logging.getLogger("httpx").setLevel(logging.WARNING)

"""
本机网络探测模块。

对目标地址发送单个 ICMP echo 请求，独立于 Zabbix 服务器判断主机是否可达。
通过系统 ping 命令的退出码判断结果，不解析命令输出文本：
  - 退出码 0 → Reachable（附带往返耗时）
  - 其他退出码或超时 → Unreachable
  - 地址缺失或格式错误 → NoAddress，不发起探测
  - 本机无法执行 ping（命令不存在、无权限、进程资源耗尽）→ 抛出 ProbeError，由调用方降级为 unknown
"""
import asyncio
import enum
import ipaddress
import logging
import math
import shutil
import sys
import time
from dataclasses import dataclass

from hostwatch.core.exceptions import ProbeError

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 1.0
# ping 自身的等待之外，再给进程启动/退出留的余量
_PROCESS_GRACE = 1.0


class ProbeStatus(str, enum.Enum):
    REACHABLE = "reachable"
    UNREACHABLE = "unreachable"
    NO_ADDRESS = "no_address"


@dataclass(frozen=True)
class ProbeResult:
    """结构化探测结果：可达性 + 可选耗时（毫秒）。"""
    status: ProbeStatus
    latency_ms: float | None = None

    @property
    def reachable(self) -> bool:
        return self.status is ProbeStatus.REACHABLE


def normalize_address(address: str | None) -> str | None:
    """校验并规范化 IP 地址，无效时返回 None。"""
    if not address:
        return None
    candidate = address.strip()
    if not candidate or candidate.upper() == "N/A":
        return None
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return None


def build_ping_command(address: str, timeout: float, platform: str | None = None) -> list[str]:
    """按平台生成单包 ping 命令。"""
    platform = platform or sys.platform
    version = ipaddress.ip_address(address).version
    if platform.startswith("win"):
        cmd = ["ping", "-n", "1", "-w", str(max(1, int(timeout * 1000)))]
        if version == 6:
            cmd.append("-6")
        return cmd + [address]
    if platform == "darwin":
        binary = "ping6" if version == 6 else "ping"
        if version == 6:
            return [binary, "-c", "1", address]
        return [binary, "-c", "1", "-t", str(max(1, math.ceil(timeout))), address]
    cmd = ["ping", "-c", "1", "-W", str(max(1, math.ceil(timeout)))]
    if version == 6:
        cmd.append("-6")
    return cmd + [address]


async def _reap(proc) -> None:
    """结束仍在运行的 ping 子进程并回收。"""
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass  # 已自行退出
    await proc.wait()


class NetworkProber:
    """基于系统 ping 命令的可达性探测器，无状态，可并发调用。"""

    def __init__(self, timeout: float = DEFAULT_PROBE_TIMEOUT) -> None:
        self.timeout = timeout

    async def probe(self, address: str | None) -> ProbeResult:
        target = normalize_address(address)
        if target is None:
            return ProbeResult(ProbeStatus.NO_ADDRESS)

        cmd = build_ping_command(target, self.timeout)
        if shutil.which(cmd[0]) is None:
            raise ProbeError(f"'{cmd[0]}' command not available", detail=target)

        start = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except (OSError, NotImplementedError) as e:
            # OSError 覆盖命令缺失、无权限以及 EMFILE/EAGAIN 等资源耗尽
            raise ProbeError(f"Unable to execute ping: {e}", detail=target) from e

        try:
            returncode = await asyncio.wait_for(proc.wait(), timeout=self.timeout + _PROCESS_GRACE)
        except asyncio.TimeoutError:
            await _reap(proc)
            logger.debug("Ping %s timed out", target)
            return ProbeResult(ProbeStatus.UNREACHABLE)
        except asyncio.CancelledError:
            await _reap(proc)
            raise

        elapsed_ms = round((time.monotonic() - start) * 1000, 1)
        if returncode == 0:
            return ProbeResult(ProbeStatus.REACHABLE, latency_ms=elapsed_ms)
        return ProbeResult(ProbeStatus.UNREACHABLE)

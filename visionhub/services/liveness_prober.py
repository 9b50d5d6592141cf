# visionhub/services/liveness_prober.py
"""
Liveness prober — one bounded reachability check against a device address.

Methods:
  ping  one ICMP echo via the system ping utility (default)
  tcp   TCP connect to host[:port] (port defaults to RTSP 554)
  http  single GET with httpx; any HTTP response counts as reachable

probe() never raises: timeouts and network errors simply report False.
"""

import asyncio
import sys

import httpx

from visionhub.config import settings
from visionhub.utils.logger import get_logger

logger = get_logger(__name__)

PROBE_METHODS = ("ping", "tcp", "http")


class LivenessProber:
    def __init__(self, method: str = settings.PROBE_METHOD,
                 timeout: float = settings.PROBE_TIMEOUT_SECONDS,
                 tcp_port: int = settings.PROBE_TCP_PORT):
        if method not in PROBE_METHODS:
            raise ValueError(f"Unknown probe method {method!r}, expected one of {PROBE_METHODS}")
        self.method = method
        self.timeout = timeout
        self.tcp_port = tcp_port

    async def probe(self, address: str) -> bool:
        if not address:
            return False
        if self.method == "tcp":
            return await self._probe_tcp(address)
        if self.method == "http":
            return await self._probe_http(address)
        return await self._probe_ping(address)

    def ping_command(self, host: str) -> list[str]:
        if sys.platform == "win32":
            return ["ping", "-n", "1", "-w", str(int(self.timeout * 1000)), host]
        return ["ping", "-c", "1", "-W", str(max(1, int(self.timeout))), host]

    async def _probe_ping(self, host: str) -> bool:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.ping_command(host),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.error(f"Cannot run ping for {host}: {e}")
            return False

        try:
            # ping enforces its own -W limit; the extra second covers process startup
            returncode = await asyncio.wait_for(proc.wait(), timeout=self.timeout + 1)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return False
        return returncode == 0

    def _split_host_port(self, address: str) -> tuple[str, int]:
        if address.count(":") > 1 and not address.startswith("["):
            return address, self.tcp_port  # bare IPv6
        host, sep, port = address.rpartition(":")
        if sep and port.isdigit():
            return host.strip("[]"), int(port)
        return address.strip("[]"), self.tcp_port

    async def _probe_tcp(self, address: str) -> bool:
        host, port = self._split_host_port(address)
        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=self.timeout)
        except (OSError, asyncio.TimeoutError):
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    async def _probe_http(self, address: str) -> bool:
        url = address if address.startswith(("http://", "https://")) else f"http://{address}/"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, verify=False) as client:
                await client.get(url)
            return True
        except httpx.HTTPError:
            return False

"""
Liveness polling for freshly started containers.

A container counts as healthy once the engine reports it running and,
when an HTTP path is configured, it answers that path with a non-5xx
status. Probes are spaced with bounded exponential backoff.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

import httpx

from autodeploy.core.exceptions import HealthCheckFailure
from autodeploy.services.docker.runtime_base import ContainerRuntime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthCheckPolicy:
    """Backoff schedule for liveness probes."""

    initial_delay: float = 3.0
    interval: float = 1.0
    backoff_factor: float = 2.0
    max_interval: float = 10.0
    max_attempts: int = 6

    @classmethod
    def from_settings(cls, settings) -> "HealthCheckPolicy":
        return cls(
            initial_delay=settings.HEALTH_CHECK_INITIAL_DELAY,
            interval=settings.HEALTH_CHECK_INTERVAL,
            backoff_factor=settings.HEALTH_CHECK_BACKOFF_FACTOR,
            max_interval=settings.HEALTH_CHECK_MAX_INTERVAL,
            max_attempts=settings.HEALTH_CHECK_MAX_ATTEMPTS,
        )

    def delays(self) -> List[float]:
        """
        Seconds to wait before each probe.

        The first probe waits initial_delay; later probes wait interval,
        multiplied by backoff_factor each time and capped at max_interval.
        """
        schedule = []
        step = self.interval
        for attempt in range(max(self.max_attempts, 1)):
            if attempt == 0:
                schedule.append(self.initial_delay)
            else:
                schedule.append(min(step, self.max_interval))
                step *= self.backoff_factor
        return schedule


class HealthChecker:
    """
    Poll a container until it is healthy or the policy is exhausted.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        policy: Optional[HealthCheckPolicy] = None,
        http_path: Optional[str] = None,
        http_host: str = "localhost",
        http_timeout: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.runtime = runtime
        self.policy = policy or HealthCheckPolicy()
        self.http_path = http_path
        self.http_host = http_host
        self.http_timeout = http_timeout
        self._sleep = sleep

    async def http_ok(self, host_port: int) -> bool:
        """Check the configured HTTP path on the published port."""
        path = self.http_path if self.http_path.startswith("/") else f"/{self.http_path}"
        url = f"http://{self.http_host}:{host_port}{path}"
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(url, timeout=self.http_timeout)
                return response.status_code < 500
        except httpx.HTTPError as e:
            logger.debug(f"Health check failed for {url}: {e}")
            return False

    async def probe(self, container_ref: str, host_port: Optional[int]) -> bool:
        if not await self.runtime.is_healthy(container_ref):
            return False
        if self.http_path and host_port:
            return await self.http_ok(host_port)
        return True

    async def wait_until_healthy(self, container_ref: str, host_port: Optional[int] = None) -> int:
        """
        Probe until healthy.

        Args:
            container_ref: Container to poll
            host_port: Published host port, used by the HTTP probe

        Returns:
            Number of probes it took

        Raises:
            HealthCheckFailure: If no probe succeeded
        """
        delays = self.policy.delays()
        for attempt, delay in enumerate(delays, start=1):
            await self._sleep(delay)
            if await self.probe(container_ref, host_port):
                logger.info(f"Container {container_ref} healthy after {attempt} check(s)")
                return attempt
            logger.debug(f"Container {container_ref} not healthy yet (check {attempt}/{len(delays)})")
        raise HealthCheckFailure(container_ref, len(delays))

"""
Tests for liveness polling.

Tests cover:
- Backoff schedule
- Success on a later probe, failure after exhausting attempts
- Optional HTTP probe

Run with: pytest tests/test_health.py -v
"""
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from autodeploy.core.exceptions import HealthCheckFailure
from autodeploy.services.deployment import HealthChecker, HealthCheckPolicy


class TestHealthCheckPolicy:
    """Tests for the backoff schedule."""

    def test_delays_back_off_and_cap(self):
        policy = HealthCheckPolicy(initial_delay=3, interval=1, backoff_factor=2, max_interval=5, max_attempts=6)

        assert policy.delays() == [3, 1, 2, 4, 5, 5]

    def test_single_attempt(self):
        assert HealthCheckPolicy(initial_delay=0.5, max_attempts=1).delays() == [0.5]

    def test_from_settings(self):
        from autodeploy.core.config import Settings

        policy = HealthCheckPolicy.from_settings(Settings(HEALTH_CHECK_MAX_ATTEMPTS=2, HEALTH_CHECK_INITIAL_DELAY=0.1))

        assert policy.max_attempts == 2
        assert policy.delays()[0] == 0.1


class TestHealthChecker:
    """Tests for HealthChecker.wait_until_healthy."""

    def make_checker(self, healthy_results, **kwargs):
        runtime = MagicMock()
        runtime.is_healthy = AsyncMock(side_effect=healthy_results)
        sleep = AsyncMock()
        policy = HealthCheckPolicy(initial_delay=2, interval=1, backoff_factor=2, max_interval=10, max_attempts=4)
        return HealthChecker(runtime, policy, sleep=sleep, **kwargs), runtime, sleep

    @pytest.mark.asyncio
    async def test_healthy_on_third_probe(self):
        checker, runtime, sleep = self.make_checker([False, False, True])

        attempts = await checker.wait_until_healthy("c1")

        assert attempts == 3
        assert [call.args[0] for call in sleep.call_args_list] == [2, 1, 2]

    @pytest.mark.asyncio
    async def test_never_healthy(self):
        checker, runtime, sleep = self.make_checker([False] * 4)

        with pytest.raises(HealthCheckFailure) as exc_info:
            await checker.wait_until_healthy("c1")

        assert exc_info.value.details == {"container_ref": "c1", "attempts": 4}
        assert runtime.is_healthy.await_count == 4

    @pytest.mark.asyncio
    async def test_http_probe_required_when_configured(self):
        checker, runtime, _ = self.make_checker([True, True], http_path="health")
        checker.http_ok = AsyncMock(side_effect=[False, True])

        attempts = await checker.wait_until_healthy("c1", host_port=49153)

        assert attempts == 2
        checker.http_ok.assert_awaited_with(49153)

    @pytest.mark.asyncio
    async def test_http_probe_skipped_without_host_port(self):
        checker, runtime, _ = self.make_checker([True], http_path="/health")
        checker.http_ok = AsyncMock()

        assert await checker.wait_until_healthy("c1") == 1
        checker.http_ok.assert_not_awaited()


class TestHttpProbe:
    """Tests for HealthChecker.http_ok."""

    @pytest.mark.asyncio
    async def test_non_5xx_is_ok(self):
        checker = HealthChecker(MagicMock(), http_path="health", http_host="127.0.0.1")
        response = MagicMock(status_code=404)

        with patch("httpx.AsyncClient.get", new=AsyncMock(return_value=response)) as mock_get:
            assert await checker.http_ok(8080) is True

        assert mock_get.call_args.args[0] == "http://127.0.0.1:8080/health"

    @pytest.mark.asyncio
    async def test_server_error_is_not_ok(self):
        checker = HealthChecker(MagicMock(), http_path="/health")

        with patch("httpx.AsyncClient.get", new=AsyncMock(return_value=MagicMock(status_code=502))):
            assert await checker.http_ok(8080) is False

    @pytest.mark.asyncio
    async def test_connection_error_is_not_ok(self):
        checker = HealthChecker(MagicMock(), http_path="/health")

        with patch("httpx.AsyncClient.get", new=AsyncMock(side_effect=httpx.ConnectError("refused"))):
            assert await checker.http_ok(8080) is False

"""Component health checks behind /health/detailed, /health/ready and the CLI."""

import asyncio
import time
from datetime import datetime
from typing import Any, Callable, Dict, NamedTuple

from .logging import get_logger

logger = get_logger(__name__)


class _Check(NamedTuple):
    func: Callable[[], Any]
    timeout: float


class HealthChecker:
    """
    Registry of named checks.

    A check is a plain or async callable returning a message string or a dict
    merged into its result; raising marks the component unhealthy. Sync
    checks run in a worker thread so a slow database ping cannot block the
    event loop past its timeout.
    """

    def __init__(self):
        self.checks: Dict[str, _Check] = {}
        self.last_results: Dict[str, Dict[str, Any]] = {}

    def register_check(self, name: str, check_func: Callable[[], Any], timeout: float = 5.0):
        # Re-registering replaces the check; the factory runs once per app
        self.checks[name] = _Check(check_func, timeout)
        logger.debug(f"Registered health check: {name}")

    def clear(self):
        self.checks.clear()
        self.last_results.clear()

    async def _call(self, check: _Check) -> Any:
        if asyncio.iscoroutinefunction(check.func):
            return await asyncio.wait_for(check.func(), timeout=check.timeout)
        return await asyncio.wait_for(asyncio.to_thread(check.func), timeout=check.timeout)

    async def run_check(self, name: str) -> Dict[str, Any]:
        check = self.checks.get(name)
        if check is None:
            return {"status": "error", "message": f"Health check '{name}' not found"}

        started = time.perf_counter()
        try:
            outcome = await self._call(check)
            result: Dict[str, Any] = {"status": "healthy", "message": "Check passed"}
            if isinstance(outcome, dict):
                result.update(outcome)
            elif isinstance(outcome, str):
                result["message"] = outcome
        except asyncio.TimeoutError:
            result = {"status": "timeout", "message": f"No answer within {check.timeout}s"}
        except Exception as e:
            logger.warning(f"Health check '{name}' failed: {e}")
            result = {"status": "unhealthy", "message": str(e), "error_type": type(e).__name__}

        result["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
        result["timestamp"] = datetime.utcnow().isoformat()
        self.last_results[name] = result
        return result

    async def run_all_checks(self) -> Dict[str, Any]:
        """Run every check concurrently; overall status is healthy only if all are."""
        names = list(self.checks)
        outcomes = await asyncio.gather(*(self.run_check(name) for name in names))
        results = dict(zip(names, outcomes))
        healthy = all(result["status"] == "healthy" for result in outcomes)
        return {
            "overall_status": "healthy" if healthy else "unhealthy",
            "checks": results,
            "timestamp": datetime.utcnow().isoformat()
        }


health_checker = HealthChecker()

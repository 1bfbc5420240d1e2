"""Request timing middleware for API performance tracking."""

import time
from collections import defaultdict
from dataclasses import dataclass, field

import numpy as np
import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

MAX_SAMPLES = 1000


@dataclass
class EndpointStats:
    """Latency samples (seconds) for one route."""

    latencies: list[float] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.latencies)

    def percentile(self, q: float) -> float:
        if not self.latencies:
            return 0.0
        return float(np.percentile(self.latencies, q, method="higher"))

    @property
    def avg(self) -> float:
        return float(np.mean(self.latencies)) if self.latencies else 0.0

    def record(self, duration: float) -> None:
        self.latencies.append(duration)
        if len(self.latencies) > MAX_SAMPLES:
            del self.latencies[: len(self.latencies) - MAX_SAMPLES]

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "avg_ms": round(self.avg * 1000, 2),
            "p50_ms": round(self.percentile(50) * 1000, 2),
            "p95_ms": round(self.percentile(95) * 1000, 2),
        }


_endpoint_stats: dict[str, EndpointStats] = defaultdict(EndpointStats)


def get_endpoint_stats() -> dict[str, dict]:
    """Collected timing stats keyed by ``METHOD route``."""
    return {key: stats.to_dict() for key, stats in _endpoint_stats.items()}


def reset_endpoint_stats() -> None:
    _endpoint_stats.clear()


def _route_key(request: Request) -> str:
    # user ids in the path would otherwise give every user their own bucket
    route = request.scope.get("route")
    path = getattr(route, "path", None) or request.url.path
    return f"{request.method} {path}"


class TimingMiddleware(BaseHTTPMiddleware):
    """Adds X-Response-Time-Ms header and collects per-route latency stats."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        key = _route_key(request)
        _endpoint_stats[key].record(duration)

        response.headers["X-Response-Time-Ms"] = str(round(duration * 1000, 2))

        logger.debug(
            "request_completed",
            route=key,
            status=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )

        return response

# ========================================
# talentbridge/services/admission.py
# ========================================
"""In-memory admission control (fixed-window rate limiting).

Each process keeps its own window map, so limits are per instance and not
shared across horizontally scaled deployments.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Request

from talentbridge.config import ADMISSION_SWEEP_SECONDS
from talentbridge.utils.errors import RateLimited
from talentbridge.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AdmissionLimit:
    max_requests: int
    window_seconds: int


@dataclass(frozen=True)
class AdmissionResult:
    allowed: bool
    remaining: int
    reset_in_seconds: int


@dataclass
class _Window:
    count: int
    reset_at: float


class AdmissionController:
    def __init__(self, sweep_interval: float = ADMISSION_SWEEP_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._windows)

    def check(self, identifier: str, max_requests: int, window_seconds: int) -> AdmissionResult:
        with self._lock:
            now = self._clock()
            self._sweep_expired(now)

            window = self._windows.get(identifier)
            if window is None or now > window.reset_at:
                self._windows[identifier] = _Window(count=1, reset_at=now + window_seconds)
                return AdmissionResult(
                    allowed=True,
                    remaining=max_requests - 1,
                    reset_in_seconds=window_seconds,
                )

            window.count += 1
            reset_in = math.ceil(window.reset_at - now)

            if window.count > max_requests:
                return AdmissionResult(allowed=False, remaining=0, reset_in_seconds=reset_in)

            return AdmissionResult(
                allowed=True,
                remaining=max_requests - window.count,
                reset_in_seconds=reset_in,
            )

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._last_sweep = self._clock()

    def _sweep_expired(self, now: float) -> None:
        # Caller holds the lock
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now

        expired = [key for key, window in self._windows.items() if now > window.reset_at]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug("Swept %d expired admission windows", len(expired))


# ===========================
# PRESET LIMITS
# ===========================

APPLICATION_LIMIT = AdmissionLimit(max_requests=10, window_seconds=60 * 60)
JOB_CREATE_LIMIT = AdmissionLimit(max_requests=20, window_seconds=60 * 60)
JOB_EDIT_LIMIT = AdmissionLimit(max_requests=30, window_seconds=60 * 60)
TRANSITION_LIMIT = AdmissionLimit(max_requests=120, window_seconds=60 * 60)
PRICING_QUOTE_LIMIT = AdmissionLimit(max_requests=60, window_seconds=60)
ADMIN_WRITE_LIMIT = AdmissionLimit(max_requests=120, window_seconds=60 * 60)
NOTIFICATION_WRITE_LIMIT = AdmissionLimit(max_requests=120, window_seconds=60 * 60)


# ===========================
# FASTAPI INTEGRATION
# ===========================

def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # "client, proxy1, proxy2" -> client
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


def get_admission_controller(request: Request) -> AdmissionController:
    return request.app.state.admission


def admission_guard(action: str, limit: AdmissionLimit):
    """Dependency factory: deny the request with RateLimited when over the limit."""

    def guard(request: Request) -> Optional[AdmissionResult]:
        controller = get_admission_controller(request)
        identifier = f"{action}:{client_ip(request)}"
        result = controller.check(identifier, limit.max_requests, limit.window_seconds)
        if not result.allowed:
            logger.warning("Admission denied for %s, reset in %ss", identifier, result.reset_in_seconds)
            raise RateLimited(result.reset_in_seconds)
        return result

    return guard

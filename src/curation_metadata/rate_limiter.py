"""Thread-safe token bucket rate limiter, one instance per remote host."""

import time
import threading


class RateLimiter:
    def __init__(self, requests_per_second: float):
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        self.rate = requests_per_second
        self.tokens = requests_per_second
        self._last_refill = time.monotonic()
        self._lock = threading.Lock()

    @classmethod
    def for_ncbi(cls, api_key=None) -> "RateLimiter":
        """E-utilities allow 3 requests/sec anonymously, 10 with an API key."""
        return cls(10.0 if api_key else 3.0)

    def acquire(self) -> None:
        """Block until a token is available."""
        while True:
            with self._lock:
                now = time.monotonic()
                elapsed = now - self._last_refill
                self.tokens = min(self.rate, self.tokens + elapsed * self.rate)
                self._last_refill = now
                if self.tokens >= 1.0:
                    self.tokens -= 1.0
                    return
                wait = (1.0 - self.tokens) / self.rate
            time.sleep(min(wait, 0.05))

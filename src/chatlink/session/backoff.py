"""
Capped exponential backoff for restart attempts.
"""


class BackoffPolicy:
    """
    Doubles the delay on every failed attempt up to ``cap_ms``.

    After N consecutive failures ``current_ms == min(initial_ms * 2**N, cap_ms)``.
    A completed restart resets it to ``initial_ms``.
    """

    def __init__(self, initial_ms: int = 2000, cap_ms: int = 60000):
        if initial_ms <= 0:
            raise ValueError("initial_ms must be positive")
        if cap_ms < initial_ms:
            raise ValueError("cap_ms must be at least initial_ms")
        self.initial_ms = initial_ms
        self.cap_ms = cap_ms
        self.current_ms = initial_ms

    @property
    def delay_seconds(self) -> float:
        return self.current_ms / 1000

    def fail(self) -> int:
        """Record a failed attempt and return the new delay in ms."""
        self.current_ms = min(self.current_ms * 2, self.cap_ms)
        return self.current_ms

    def reset(self) -> None:
        self.current_ms = self.initial_ms

from typing import Optional

from statsd import StatsClient


class ScopedStatsClient:
    """
    A StatsClient wrapper that prefixes every stat with a dotted scope, so that
    each module reports under its own namespace. All scopes share one
    client; when no client is set, every call is a no-op.
    """

    _client: Optional[StatsClient] = None

    def __init__(self, prefix: Optional[str] = None):
        self._scope_prefix = prefix

    def get_stats_client(self, scope: str) -> "ScopedStatsClient":
        if not self._scope_prefix:
            prefix = scope
        else:
            prefix = f"{self._scope_prefix}.{scope}"
        return ScopedStatsClient(prefix)

    @staticmethod
    def is_enabled() -> bool:
        return ScopedStatsClient._client is not None

    def _scoped(self, stat: str) -> str:
        if self._scope_prefix:
            return f"{self._scope_prefix}.{stat}"
        return stat

    def incr(self, stat: str, count: int = 1, rate: float = 1.0) -> None:
        if self.is_enabled():
            ScopedStatsClient._client.incr(self._scoped(stat), count, rate)

    def timer(self, stat: str, rate: float = 1.0):
        if self.is_enabled():
            return ScopedStatsClient._client.timer(self._scoped(stat), rate)
        return None

    def gauge(self, stat: str, value: int, rate: float = 1.0, delta: bool = False) -> None:
        if self.is_enabled():
            ScopedStatsClient._client.gauge(self._scoped(stat), value, rate, delta)


_scoped_stats_client = ScopedStatsClient(None)


def set_stats_client(stats_client: Optional[StatsClient]) -> None:
    ScopedStatsClient._client = stats_client


def get_stats_client(prefix: str) -> ScopedStatsClient:
    return _scoped_stats_client.get_stats_client(prefix)

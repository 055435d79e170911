"""
Rate-limit bookkeeping.

Twitter reports the quota of the endpoint that was just called in the
``x-rate-limit-limit``, ``x-rate-limit-remaining`` and
``x-rate-limit-reset`` headers. `reset` is a UTC epoch in seconds.
"""

from collections import namedtuple
from time import time


class RateLimit(namedtuple('RateLimit', 'limit remaining reset')):
    __slots__ = ()

    @classmethod
    def from_headers(cls, headers):
        """Return the rate limit announced by `headers`, or None."""
        if not headers:
            return None
        lowered = dict((k.lower(), v) for k, v in headers.items())
        if 'x-rate-limit-limit' not in lowered:
            return None
        return cls(
            int(lowered['x-rate-limit-limit']),
            int(lowered.get('x-rate-limit-remaining', 0)),
            int(lowered.get('x-rate-limit-reset', 0)))

    @property
    def reset_ms(self):
        return self.reset * 1000

    def as_dict(self):
        return dict(self._asdict())


def is_exchange_allowed(rate_limit, now=None):
    """
    True when another request may be sent: no quota is known, the quota
    window already reset, or some requests remain.
    """
    if not rate_limit:
        return True
    if now is None:
        now = time()
    if rate_limit.reset * 1000 < now * 1000:
        return True
    return rate_limit.remaining > 0


class RateLimitStore(object):
    """
    Keep the last known rate limit of every endpoint. Pass its `save`
    method as the `rate_limit_saver` of a `RequestMaker`.
    """
    def __init__(self):
        self._limits = {}

    def save(self, endpoint, method, rate_limit):
        self._limits[(method.upper(), endpoint)] = rate_limit

    def get(self, endpoint, method=None):
        if method is not None:
            return self._limits.get((method.upper(), endpoint))
        for (_, stored_endpoint), rate_limit in self._limits.items():
            if stored_endpoint == endpoint:
                return rate_limit
        return None

    def __len__(self):
        return len(self._limits)


__all__ = ["RateLimit", "RateLimitStore", "is_exchange_allowed"]

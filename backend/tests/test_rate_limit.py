from chitjar.core.rate_limit import SlidingWindowLimiter


def test_limiter_rejects_requests_over_the_window_budget() -> None:
    limiter = SlidingWindowLimiter(max_requests=2, window_seconds=60)
    assert limiter.allow('1.2.3.4:/api/v1/funds', now=0.0) is True
    assert limiter.allow('1.2.3.4:/api/v1/funds', now=1.0) is True
    assert limiter.allow('1.2.3.4:/api/v1/funds', now=2.0) is False
    assert limiter.allow('5.6.7.8:/api/v1/funds', now=2.0) is True
    assert limiter.allow('1.2.3.4:/api/v1/funds', now=61.5) is True


def test_limiter_evicts_keys_once_their_window_empties() -> None:
    limiter = SlidingWindowLimiter(max_requests=5, window_seconds=10)
    for fund_id in range(50):
        limiter.allow(f'1.2.3.4:/api/v1/funds/{fund_id}', now=float(fund_id) / 10)
    assert len(limiter) == 50

    limiter.allow('1.2.3.4:/api/v1/funds/0', now=20.0)
    assert len(limiter) == 50

    limiter.sweep(now=31.0)
    assert len(limiter) == 0


def test_limiter_drops_expired_key_on_revisit() -> None:
    limiter = SlidingWindowLimiter(max_requests=1, window_seconds=5)
    assert limiter.allow('client:/health', now=0.0) is True
    assert limiter.allow('client:/health', now=1.0) is False
    assert limiter.allow('client:/health', now=10.0) is True
    assert len(limiter) == 1

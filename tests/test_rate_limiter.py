import pytest

from trailcam.services.rate_limiter import FixedWindowRateLimiter


@pytest.fixture
def limiter(clock):
    return FixedWindowRateLimiter(limit=3, window=10, clock=clock)


def test_allows_up_to_limit(limiter):
    decisions = [limiter.hit("k") for _ in range(3)]
    assert all(d.allowed for d in decisions)
    assert [d.remaining for d in decisions] == [2, 1, 0]


def test_blocks_with_wait_hint(limiter, clock):
    for _ in range(3):
        limiter.hit("k")

    clock.advance(2.5)
    decision = limiter.hit("k")

    assert decision.allowed is False
    assert decision.wait == 8


def test_rejected_hits_do_not_extend_window(limiter, clock):
    for _ in range(5):
        limiter.hit("k")
    clock.advance(10)
    assert limiter.hit("k").allowed is True


def test_keys_are_independent(limiter):
    for _ in range(3):
        limiter.hit(("stream-1", "10.0.0.1"))
    assert limiter.hit(("stream-1", "10.0.0.2")).allowed is True
    assert limiter.hit(("stream-2", "10.0.0.1")).allowed is True


def test_forget_matching_keys(limiter):
    for _ in range(3):
        limiter.hit((1, "a"))
        limiter.hit((2, "a"))

    assert limiter.forget(lambda key: key[0] == 1) == 1
    assert limiter.hit((1, "a")).allowed is True
    assert limiter.hit((2, "a")).allowed is False


def test_invalid_configuration():
    with pytest.raises(ValueError):
        FixedWindowRateLimiter(limit=0, window=10)
    with pytest.raises(ValueError):
        FixedWindowRateLimiter(limit=3, window=0)


def test_refund_returns_a_slot(limiter):
    for _ in range(3):
        limiter.hit("k")
    limiter.refund("k")

    assert limiter.hit("k").allowed is True
    assert limiter.hit("k").allowed is False


def test_refund_of_unknown_key_is_noop(limiter):
    limiter.refund("missing")
    assert limiter.hit("missing").remaining == 2

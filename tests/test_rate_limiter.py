from __future__ import annotations

from chanscraper.rate_limiter import RateLimiter


def test_throttle_waits_only_for_the_remaining_interval(clock):
    limiter = RateLimiter(delay_sec=1.0, max_delay_sec=30.0)

    limiter.throttle()
    assert clock.sleeps == []

    clock.now += 0.25
    limiter.throttle()
    assert clock.sleeps == [0.75]

    clock.now += 5.0
    limiter.throttle()
    assert clock.sleeps == [0.75]


def test_escalate_doubles_up_to_ceiling_and_never_resets():
    limiter = RateLimiter(delay_sec=1.0, max_delay_sec=30.0)

    delays = [limiter.escalate() for _ in range(6)]

    assert delays == [2.0, 4.0, 8.0, 16.0, 30.0, 30.0]
    assert limiter.current_delay == 30.0
    assert limiter.initial_delay == 1.0


def test_throttle_uses_escalated_delay(clock):
    limiter = RateLimiter(delay_sec=1.0, max_delay_sec=30.0)
    limiter.throttle()
    limiter.escalate()

    clock.now += 1.5
    limiter.throttle()

    assert clock.sleeps == [0.5]

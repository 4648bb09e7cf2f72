import pytest

from player_scraper.config import RateLimitConfig
from player_scraper.resilience.rate_limiter import RateLimiter


def limiter(sleeps, **overrides):
    settings = dict(min_delay=1.0, initial_delay=1.0, jitter_percent=0.0,
                    backoff_factor=2.0, max_delay=8.0, cooldown_threshold=3, cooldown_duration=60.0)
    settings.update(overrides)
    return RateLimiter(RateLimitConfig(**settings), sleep=sleeps.append, clock=lambda: 100.0)


def test_requests_are_spaced_by_current_delay(sleeps):
    rl = limiter(sleeps)
    rl.wait()
    rl.wait()
    rl.wait()
    assert sleeps == [1.0, 2.0]


def test_failures_back_off_and_success_decays(sleeps):
    rl = limiter(sleeps)
    rl.record_failure()
    rl.record_failure()
    assert rl.get_current_delay() == 4.0
    rl.record_success()
    assert rl.get_current_delay() == pytest.approx(3.6)


def test_failure_streak_triggers_cooldown(sleeps):
    rl = limiter(sleeps)
    for _ in range(3):
        rl.record_failure()
    stats = rl.get_stats()
    assert stats['in_cooldown']
    assert stats['consecutive_failures'] == 0
    rl.wait()
    assert sleeps == [60.0]
    assert not rl.get_stats()['in_cooldown']

from app.security.rate_limit import RateLimiter as Backoff
from app.security.rate_limiter import RateLimiter as Window


def test_backoff_blocks_after_max_failures(clock):
    limiter = Backoff(max_attempts=3, base_delay=2.0, clock=clock)
    for _ in range(3):
        limiter.record_attempt("login:eve")

    assert not limiter.is_allowed("login:eve")
    assert limiter.get_retry_after("login:eve") == 2.0

    clock.advance(2.5)
    assert limiter.is_allowed("login:eve")


def test_backoff_forgets_aged_out_keys(clock):
    limiter = Backoff(max_delay=10.0, clock=clock, sweep_interval=5.0)
    for i in range(100):
        limiter.record_attempt(f"login:user{i}")
    assert len(limiter) == 100

    clock.advance(21)
    limiter.record_attempt("login:someone-new")

    assert len(limiter) == 1


def test_backoff_success_clears_key(clock):
    limiter = Backoff(clock=clock)
    limiter.record_attempt("login:eve")
    limiter.record_attempt("login:eve", success=True)
    assert len(limiter) == 0


def test_window_caps_and_slides(clock):
    limiter = Window(clock=clock)
    assert all(limiter.is_allowed("a@example.com", "otp:signup", max_attempts=2, window_seconds=60)
               for _ in range(2))
    assert not limiter.is_allowed("a@example.com", "otp:signup", max_attempts=2, window_seconds=60)

    clock.advance(61)
    assert limiter.is_allowed("a@example.com", "otp:signup", max_attempts=2, window_seconds=60)


def test_window_drops_drained_buckets(clock):
    limiter = Window(clock=clock, sweep_interval=30.0)
    for i in range(50):
        limiter.is_allowed(f"user{i}@example.com", "otp:signup", window_seconds=60)
    assert len(limiter) == 50

    clock.advance(61)
    limiter.is_allowed("late@example.com", "otp:signup", window_seconds=60)

    assert len(limiter) == 1

from __future__ import annotations

import random
import unittest

from event_ingest.errors import PageFetchError
from event_ingest.scraping.backoff import BackoffPolicy, run_with_backoff
from event_ingest.scraping.rate_limiter import InterPageDelay
from fakes import SleepRecorder


class TestBackoffPolicy(unittest.TestCase):
    def test_delays_grow_exponentially_without_jitter(self) -> None:
        policy = BackoffPolicy(max_retries=3, base_seconds=1.0, multiplier=2.0, jitter_seconds=0.0)

        self.assertEqual([policy.next_delay(attempt) for attempt in range(3)], [1.0, 2.0, 4.0])

    def test_gives_up_after_max_retries(self) -> None:
        policy = BackoffPolicy(max_retries=2, jitter_seconds=0.0)

        self.assertIsNone(policy.next_delay(2))
        self.assertIsNone(BackoffPolicy(max_retries=0).next_delay(0))

    def test_delay_is_capped(self) -> None:
        policy = BackoffPolicy(max_retries=10, base_seconds=1.0, multiplier=2.0, jitter_seconds=0.0, max_seconds=5.0)

        self.assertEqual(policy.next_delay(6), 5.0)

    def test_jitter_stays_within_bounds(self) -> None:
        policy = BackoffPolicy(
            max_retries=5,
            base_seconds=1.0,
            multiplier=2.0,
            jitter_seconds=0.5,
            max_seconds=None,
            rng=random.Random(7),
        )

        for attempt in range(5):
            delay = policy.next_delay(attempt)
            base = 2.0**attempt
            self.assertGreaterEqual(delay, base)
            self.assertLessEqual(delay, base + 0.5)


class TestRunWithBackoff(unittest.TestCase):
    def test_returns_after_transient_failures(self) -> None:
        attempts: list[int] = []
        retries: list[tuple[int, float]] = []
        sleeps = SleepRecorder()

        def operation() -> str:
            attempts.append(len(attempts))
            if len(attempts) < 3:
                raise PageFetchError("flaky")
            return "ok"

        result = run_with_backoff(
            operation,
            policy=BackoffPolicy(max_retries=3, base_seconds=1.0, jitter_seconds=0.0),
            retry_on=(PageFetchError,),
            sleep=sleeps,
            on_retry=lambda attempt, exc, delay: retries.append((attempt, delay)),
        )

        self.assertEqual(result, "ok")
        self.assertEqual(sleeps.calls, [1.0, 2.0])
        self.assertEqual(retries, [(1, 1.0), (2, 2.0)])

    def test_reraises_last_error_when_exhausted(self) -> None:
        calls: list[int] = []

        def operation() -> None:
            calls.append(1)
            raise PageFetchError(f"failure {len(calls)}")

        with self.assertRaises(PageFetchError) as ctx:
            run_with_backoff(
                operation,
                policy=BackoffPolicy(max_retries=2, jitter_seconds=0.0),
                retry_on=(PageFetchError,),
                sleep=SleepRecorder(),
            )

        self.assertEqual(len(calls), 3)
        self.assertEqual(str(ctx.exception), "failure 3")

    def test_other_errors_are_not_retried(self) -> None:
        sleeps = SleepRecorder()

        def operation() -> None:
            raise KeyError("missing")

        with self.assertRaises(KeyError):
            run_with_backoff(
                operation,
                policy=BackoffPolicy(max_retries=3),
                retry_on=(PageFetchError,),
                sleep=sleeps,
            )
        self.assertEqual(sleeps.calls, [])


    def test_rejected_errors_are_not_retried(self) -> None:
        sleeps = SleepRecorder()
        calls: list[int] = []

        def operation() -> None:
            calls.append(1)
            raise PageFetchError("gone", retryable=False)

        with self.assertRaises(PageFetchError):
            run_with_backoff(
                operation,
                policy=BackoffPolicy(max_retries=3),
                retry_on=(PageFetchError,),
                sleep=sleeps,
                should_retry=lambda exc: exc.retryable,
            )
        self.assertEqual(len(calls), 1)
        self.assertEqual(sleeps.calls, [])

class TestInterPageDelay(unittest.TestCase):
    def test_wait_sleeps_within_bounds(self) -> None:
        sleeps = SleepRecorder()
        delay = InterPageDelay(min_seconds=3.0, max_seconds=5.0, sleep=sleeps, rng=random.Random(1))

        waited = [delay.wait() for _ in range(10)]

        self.assertEqual(waited, sleeps.calls)
        self.assertTrue(all(3.0 <= seconds <= 5.0 for seconds in waited))

    def test_inverted_bounds_are_normalized(self) -> None:
        delay = InterPageDelay(min_seconds=4.0, max_seconds=1.0, sleep=SleepRecorder())

        self.assertEqual(delay.max_seconds, 4.0)

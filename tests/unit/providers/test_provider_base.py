from __future__ import annotations

import threading
import unittest

from farviewer.errors import Cancelled, NotFound, ProviderError, Timeout, TransportError, error_kind
from farviewer.providers.base import (
    call_with_timeout,
    is_within,
    join_relative,
    normalize_relative,
    parent_of,
)


class RelativePathTests(unittest.TestCase):
    def test_normalize_relative_collapses_separators_and_dots(self) -> None:
        self.assertEqual(normalize_relative(""), "")
        self.assertEqual(normalize_relative("/"), "")
        self.assertEqual(normalize_relative("./src//util/"), "src/util")

    def test_backslash_is_part_of_a_name(self) -> None:
        self.assertEqual(normalize_relative("src\\util"), "src\\util")
        self.assertEqual(normalize_relative("a\\..\\b/inner.txt"), "a\\..\\b/inner.txt")

    def test_normalize_relative_rejects_parent_segments(self) -> None:
        with self.assertRaises(ValueError):
            normalize_relative("src/../../etc")

    def test_join_and_parent_are_inverse(self) -> None:
        self.assertEqual(join_relative("", "src"), "src")
        self.assertEqual(join_relative("src", "main.go"), "src/main.go")
        self.assertEqual(parent_of("src/main.go"), "src")
        self.assertEqual(parent_of("src"), "")

    def test_is_within_matches_whole_segments(self) -> None:
        self.assertTrue(is_within("src/util", "src"))
        self.assertTrue(is_within("src", "src"))
        self.assertTrue(is_within("anything", ""))
        self.assertFalse(is_within("srcs/a", "src"))


class CallWithTimeoutTests(unittest.TestCase):
    def test_returns_value_within_deadline(self) -> None:
        self.assertEqual(call_with_timeout(lambda: 42, 1.0), 42)

    def test_slow_call_raises_timeout_with_path(self) -> None:
        release = threading.Event()
        self.addCleanup(release.set)

        with self.assertRaises(Timeout) as ctx:
            call_with_timeout(lambda: release.wait(2.0), 0.05, "src")

        self.assertEqual(ctx.exception.path, "src")
        self.assertTrue(ctx.exception.retryable)

    def test_errors_from_the_call_propagate(self) -> None:
        def fail() -> None:
            raise NotFound("gone", "a")

        with self.assertRaises(NotFound):
            call_with_timeout(fail, 1.0)

    def test_no_timeout_runs_inline(self) -> None:
        caller = threading.current_thread()

        self.assertIs(call_with_timeout(threading.current_thread, None), caller)


class ErrorKindTests(unittest.TestCase):
    def test_labels(self) -> None:
        self.assertEqual(error_kind(NotFound("x")), "not found")
        self.assertEqual(error_kind(Timeout("x")), "timeout")
        self.assertEqual(error_kind(TransportError("x")), "transport error")
        self.assertEqual(error_kind(Cancelled()), "cancelled")
        self.assertEqual(error_kind(ValueError()), "ValueError")

    def test_only_transient_errors_are_retryable(self) -> None:
        self.assertFalse(NotFound("x").retryable)
        self.assertFalse(ProviderError("x").retryable)
        self.assertTrue(TransportError("x").retryable)


if __name__ == "__main__":
    unittest.main()

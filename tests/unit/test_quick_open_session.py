"""Quick-open session tests: sequencing, supersession, and scan-state flags."""

from __future__ import annotations

import threading
import time
import unittest

from farviewer.config import QuickOpenSettings
from farviewer.errors import Cancelled
from farviewer.index.store import DirectoryListing, PathIndex
from farviewer.index.types import ScanPhase, ScanState
from farviewer.providers.base import EntryKind, ListedChild
from farviewer.quick_open import Query, QuickOpenSession, SessionPhase, rank_snapshot


def _build_index(paths: list[str]) -> PathIndex:
    tree: dict[str, dict[str, EntryKind]] = {"": {}}
    for path in paths:
        parts = path.split("/")
        for depth in range(1, len(parts)):
            parent = "/".join(parts[: depth - 1])
            tree.setdefault(parent, {})[parts[depth - 1]] = EntryKind.DIRECTORY
            tree.setdefault("/".join(parts[:depth]), {})
        tree.setdefault("/".join(parts[:-1]), {})[parts[-1]] = EntryKind.FILE

    index = PathIndex()
    ordered = sorted(tree, key=lambda directory: (directory.count("/") if directory else -1, directory))
    for generation, directory in enumerate(ordered, start=1):
        children = tuple(
            ListedChild(name=name, kind=kind, size=1 if kind is EntryKind.FILE else None, mtime_ns=1)
            for name, kind in sorted(tree[directory].items())
        )
        index.apply_listings([DirectoryListing(directory, children, generation)])
    return index


def _wait_for_results(session: QuickOpenSession, *, expected_seq: int, timeout_seconds: float = 2.0) -> list:
    deadline = time.monotonic() + timeout_seconds
    out: list = []
    while time.monotonic() < deadline:
        out.extend(session.drain_results())
        if out and out[-1].seq >= expected_seq:
            break
        time.sleep(0.01)
    return out


SAMPLE_PATHS = ["src/main.go", "src/util/helpers.go", "README.md"]


class QuickOpenSessionTests(unittest.TestCase):
    def _session(self, index: PathIndex, **kwargs) -> QuickOpenSession:
        settings = kwargs.pop("settings", QuickOpenSettings(debounce_ms=0))
        session = QuickOpenSession(index, settings, **kwargs)
        self.addCleanup(session.close)
        return session

    def test_index_helper_builds_expected_candidates(self) -> None:
        self.assertEqual(_build_index(SAMPLE_PATHS).snapshot().paths, ("README.md", "src/main.go", "src/util/helpers.go"))

    def test_query_returns_ranked_matches(self) -> None:
        session = self._session(_build_index(SAMPLE_PATHS))

        seq = session.on_query_changed("mn")
        result = session.wait_for_result(seq, timeout_seconds=2.0)

        assert result is not None
        self.assertEqual(result.seq, seq)
        self.assertEqual(result.paths, ["src/main.go"])
        self.assertEqual(result.candidate_count, 3)
        self.assertIs(session.state.phase, SessionPhase.COMPLETED)

    def test_sequence_numbers_increase_and_results_never_go_backwards(self) -> None:
        session = self._session(_build_index(SAMPLE_PATHS))

        seqs = [session.on_query_changed(text) for text in ("a", "ab", "abc")]
        results = _wait_for_results(session, expected_seq=seqs[-1])

        self.assertEqual(seqs, [1, 2, 3])
        delivered = [result.seq for result in results]
        self.assertEqual(delivered, sorted(set(delivered)))
        self.assertEqual(delivered[-1], 3)
        self.assertEqual(results[-1].query.text, "abc")

    def test_superseded_queries_are_never_delivered(self) -> None:
        session = self._session(_build_index(SAMPLE_PATHS), settings=QuickOpenSettings(debounce_ms=100))

        for text in ("m", "ma", "mai"):
            session.on_query_changed(text)
        results = _wait_for_results(session, expected_seq=3)

        self.assertEqual([result.seq for result in results], [3])

    def test_empty_query_yields_empty_result_with_its_sequence(self) -> None:
        session = self._session(_build_index(SAMPLE_PATHS))

        seq = session.on_query_changed("   ")
        result = session.wait_for_result(seq, timeout_seconds=2.0)

        assert result is not None
        self.assertEqual(result.items, ())
        self.assertEqual(result.seq, seq)

    def test_result_limit_caps_items(self) -> None:
        index = _build_index([f"pkg/file{i}.py" for i in range(20)])
        session = self._session(index, settings=QuickOpenSettings(result_limit=3, debounce_ms=0))

        result = session.wait_for_result(session.on_query_changed("file"), timeout_seconds=2.0)

        assert result is not None
        self.assertEqual(len(result.items), 3)

    def test_result_is_flagged_incomplete_while_scanning(self) -> None:
        scanning = self._session(_build_index(SAMPLE_PATHS), scan_state=lambda: ScanState(ScanPhase.SCANNING))
        idle = self._session(_build_index(SAMPLE_PATHS))

        scanning_result = scanning.wait_for_result(scanning.on_query_changed("zzz"), timeout_seconds=2.0)
        idle_result = idle.wait_for_result(idle.on_query_changed("zzz"), timeout_seconds=2.0)

        assert scanning_result is not None and idle_result is not None
        self.assertEqual(scanning_result.items, ())
        self.assertTrue(scanning_result.incomplete)
        self.assertFalse(idle_result.incomplete)

    def test_on_result_callback_receives_delivered_result(self) -> None:
        received = []
        delivered = threading.Event()

        def on_result(result) -> None:
            received.append(result)
            delivered.set()

        session = self._session(_build_index(SAMPLE_PATHS), on_result=on_result)
        seq = session.on_query_changed("hlp")

        self.assertTrue(delivered.wait(2.0))
        self.assertEqual(received[0].seq, seq)
        self.assertEqual(received[0].paths, ["src/util/helpers.go"])

    def test_result_reflects_one_snapshot_version(self) -> None:
        index = _build_index(SAMPLE_PATHS)
        session = self._session(index)

        result = session.wait_for_result(session.on_query_changed("go"), timeout_seconds=2.0)

        assert result is not None
        self.assertEqual(result.snapshot_version, index.version)

    def test_closed_session_rejects_queries(self) -> None:
        session = self._session(_build_index(SAMPLE_PATHS))
        session.close()

        with self.assertRaises(Cancelled):
            session.on_query_changed("a")
        self.assertIsNone(session.wait_for_result(timeout_seconds=0.1))
        self.assertTrue(session.closed)


class RankSnapshotTests(unittest.TestCase):
    def test_cancel_check_is_honoured(self) -> None:
        snapshot = _build_index(SAMPLE_PATHS).snapshot()

        with self.assertRaises(Cancelled):
            rank_snapshot(Query("go", 1), snapshot, 10, should_cancel=lambda: True)

    def test_ranking_is_deterministic_for_a_snapshot(self) -> None:
        snapshot = _build_index(SAMPLE_PATHS).snapshot()

        first = rank_snapshot(Query("go", 1), snapshot, 10)
        second = rank_snapshot(Query("go", 2), snapshot, 10)

        self.assertEqual(first, second)
        self.assertEqual(len(first), 2)


if __name__ == "__main__":
    unittest.main()

"""Directory signature and change-diff tests for poll-based watching."""

from __future__ import annotations

import threading
import unittest

from farviewer.errors import PermissionDenied, TransportError
from farviewer.providers.base import ChangeEvent, EntryKind, ListedChild
from farviewer.providers.watch import (
    diff_signatures,
    directory_signature,
    poll_directory_changes,
    snapshot_signatures,
)


def _file(name: str, size: int = 1, mtime_ns: int = 1) -> ListedChild:
    return ListedChild(name=name, kind=EntryKind.FILE, size=size, mtime_ns=mtime_ns)


def _dir(name: str) -> ListedChild:
    return ListedChild(name=name, kind=EntryKind.DIRECTORY, size=None, mtime_ns=1)


class DirectorySignatureTests(unittest.TestCase):
    def test_signature_ignores_listing_order(self) -> None:
        self.assertEqual(
            directory_signature([_file("a"), _file("b")]),
            directory_signature([_file("b"), _file("a")]),
        )

    def test_signature_changes_on_add_and_edit(self) -> None:
        base = directory_signature([_file("a")])

        self.assertNotEqual(base, directory_signature([_file("a"), _file("b")]))
        self.assertNotEqual(base, directory_signature([_file("a", size=2)]))
        self.assertNotEqual(base, directory_signature([_file("a", mtime_ns=2)]))


class SnapshotSignaturesTests(unittest.TestCase):
    def test_walks_subdirectories_and_skips_denied_ones(self) -> None:
        tree = {
            "": [_dir("src"), _dir("private"), _file("README.md")],
            "src": [_file("main.go")],
        }

        def list_directory(path: str) -> list[ListedChild]:
            if path == "private":
                raise PermissionDenied("denied", path)
            return tree[path]

        signatures = snapshot_signatures(list_directory, "")

        self.assertEqual(set(signatures), {"", "src"})

    def test_include_name_filters_hidden_children(self) -> None:
        tree = {"": [_dir(".git"), _file("a")], ".git": [_file("HEAD")]}

        signatures = snapshot_signatures(tree.__getitem__, "", include_name=lambda name: not name.startswith("."))

        self.assertEqual(set(signatures), {""})


class DiffSignaturesTests(unittest.TestCase):
    def test_reports_changed_and_new_directories_parents_first(self) -> None:
        previous = {"": "r1", "src": "s1"}
        current = {"": "r2", "src": "s1", "src/new": "n1"}

        self.assertEqual(diff_signatures(previous, current), [ChangeEvent(""), ChangeEvent("src/new")])

    def test_removed_subtree_collapses_to_its_top_directory(self) -> None:
        previous = {"": "r1", "src": "s1", "src/util": "u1", "src/util/deep": "d1"}
        current = {"": "r2"}

        self.assertEqual(
            diff_signatures(previous, current),
            [ChangeEvent(""), ChangeEvent("src", removed=True)],
        )

    def test_identical_maps_produce_no_events(self) -> None:
        self.assertEqual(diff_signatures({"": "a"}, {"": "a"}), [])


class PollDirectoryChangesTests(unittest.TestCase):
    def test_yields_events_after_baseline(self) -> None:
        tree = {"": [_file("a")]}
        rounds: list[int] = []

        def list_directory(path: str) -> list[ListedChild]:
            rounds.append(1)
            if len(rounds) >= 2:
                return [_file("a"), _file("b")]
            return tree[path]

        stop = threading.Event()
        events = poll_directory_changes(list_directory, "", interval_seconds=0.0, stop=stop)

        self.assertEqual(next(events), ChangeEvent(""))
        stop.set()
        self.assertIsNone(next(events, None))

    def test_baseline_is_taken_before_returning(self) -> None:
        tree = {"": [_file("a")]}
        stop = threading.Event()
        self.addCleanup(stop.set)

        events = poll_directory_changes(tree.__getitem__, "", interval_seconds=0.0, stop=stop)
        tree[""] = [_file("a"), _file("late")]

        self.assertEqual(next(events), ChangeEvent(""))

    def test_transport_errors_propagate(self) -> None:
        def list_directory(path: str) -> list[ListedChild]:
            raise TransportError("gone", path)

        with self.assertRaises(TransportError):
            poll_directory_changes(list_directory, "", interval_seconds=0.0)


if __name__ == "__main__":
    unittest.main()

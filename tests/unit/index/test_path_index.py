"""PathIndex reconcile, generation, eviction, and snapshot isolation tests."""

from __future__ import annotations

import unittest

from farviewer.index.store import DirectoryListing, PathIndex
from farviewer.providers.base import EntryKind, ListedChild


def _file(name: str, size: int = 1, mtime_ns: int = 1) -> ListedChild:
    return ListedChild(name=name, kind=EntryKind.FILE, size=size, mtime_ns=mtime_ns)


def _dir(name: str, mtime_ns: int = 1) -> ListedChild:
    return ListedChild(name=name, kind=EntryKind.DIRECTORY, size=None, mtime_ns=mtime_ns)


def _listing(directory: str, generation: int, *children: ListedChild) -> DirectoryListing:
    return DirectoryListing(directory=directory, children=tuple(children), generation=generation)


class PathIndexReconcileTests(unittest.TestCase):
    def setUp(self) -> None:
        self.index = PathIndex()
        self.index.apply_listings(
            [
                _listing("", 1, _dir("src"), _file("README.md")),
                _listing("src", 2, _file("main.go")),
            ]
        )

    def test_listings_populate_entries_and_candidates(self) -> None:
        snapshot = self.index.snapshot()

        self.assertIn("src", snapshot)
        self.assertIn("src/main.go", snapshot)
        self.assertEqual(snapshot.paths, ("README.md", "src/main.go"))
        self.assertEqual(snapshot.file_count, 2)
        self.assertEqual(len(snapshot), 3)
        self.assertEqual(snapshot.directories, ("", "src"))
        self.assertEqual(snapshot.get("src/main.go").generation, 2)

    def test_report_lists_added_paths_and_subdirectories(self) -> None:
        index = PathIndex()
        [report] = index.apply_listings([_listing("", 1, _dir("src"), _file("README.md"))])

        self.assertEqual(set(report.added), {"src", "README.md"})
        self.assertEqual(report.subdirectories, ("src",))
        self.assertTrue(report.attached)
        self.assertTrue(report.touched)

    def test_unchanged_entries_keep_their_generation(self) -> None:
        [report] = self.index.apply_listings([_listing("", 3, _dir("src"), _file("README.md"))])

        self.assertFalse(report.touched)
        self.assertEqual(self.index.snapshot().get("README.md").generation, 1)

    def test_unchanged_batch_publishes_no_new_version(self) -> None:
        before = self.index.snapshot()

        self.index.apply_listings([_listing("src", 3, _file("main.go"))])

        self.assertIs(self.index.snapshot(), before)

    def test_directory_entry_without_listing_still_attaches_its_listing(self) -> None:
        self.index.apply_listings([_listing("", 3, _dir("src"), _dir("docs"), _file("README.md"))])

        [report] = self.index.apply_listings([_listing("docs", 4, _file("guide.md"))])

        self.assertTrue(report.attached)
        self.assertEqual(self.index.snapshot().children("docs")[0].path, "docs/guide.md")

    def test_changed_metadata_replaces_entry_with_new_generation(self) -> None:
        [report] = self.index.apply_listings([_listing("", 3, _dir("src"), _file("README.md", size=99))])

        entry = self.index.snapshot().get("README.md")
        self.assertEqual(report.changed, ("README.md",))
        self.assertEqual(entry.generation, 3)
        self.assertEqual(entry.size, 99)

    def test_removed_directory_evicts_its_whole_subtree(self) -> None:
        [report] = self.index.apply_listings([_listing("", 3, _file("README.md"))])

        snapshot = self.index.snapshot()
        self.assertEqual(report.removed, ("src",))
        self.assertNotIn("src", snapshot)
        self.assertNotIn("src/main.go", snapshot)
        self.assertIsNone(snapshot.children("src"))

    def test_directory_replaced_by_file_drops_old_children(self) -> None:
        self.index.apply_listings([_listing("", 3, _file("src"), _file("README.md"))])

        snapshot = self.index.snapshot()
        self.assertNotIn("src/main.go", snapshot)
        self.assertIn("src", snapshot.paths)

    def test_listing_for_unattached_directory_is_ignored(self) -> None:
        [report] = self.index.apply_listings([_listing("ghost", 3, _file("boo.txt"))])

        self.assertFalse(report.attached)
        self.assertNotIn("ghost/boo.txt", self.index.snapshot())

    def test_old_snapshot_is_unaffected_by_later_commits(self) -> None:
        before = self.index.snapshot()

        self.index.apply_listings([_listing("src", 3, _file("main.go"), _file("extra.go"))])
        after = self.index.snapshot()

        self.assertNotIn("src/extra.go", before)
        self.assertEqual(before.paths, ("README.md", "src/main.go"))
        self.assertIn("src/extra.go", after)
        self.assertGreater(after.version, before.version)

    def test_snapshot_is_reused_until_the_next_commit(self) -> None:
        self.assertIs(self.index.snapshot(), self.index.snapshot())


class PathIndexEvictionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.index = PathIndex()
        self.index.apply_listings(
            [
                _listing("", 1, _dir("src"), _file("README.md")),
                _listing("src", 2, _file("main.go")),
            ]
        )

    def test_evict_removes_directory_entry_and_subtree(self) -> None:
        removed = self.index.evict("src")

        snapshot = self.index.snapshot()
        self.assertEqual(removed, 2)
        self.assertNotIn("src", snapshot)
        self.assertNotIn("src/main.go", snapshot)
        self.assertIn("README.md", snapshot)

    def test_evict_can_keep_the_directory_entry(self) -> None:
        removed = self.index.evict("src", keep_entry=True)

        snapshot = self.index.snapshot()
        self.assertEqual(removed, 1)
        self.assertIn("src", snapshot)
        self.assertNotIn("src/main.go", snapshot)
        self.assertFalse(self.index.has_listing("src"))

    def test_evicting_root_empties_the_index(self) -> None:
        self.assertEqual(self.index.evict(""), 3)
        self.assertEqual(len(self.index.snapshot()), 0)

    def test_evicting_unknown_directory_does_not_publish(self) -> None:
        version = self.index.version

        self.assertEqual(self.index.evict("missing"), 0)
        self.assertEqual(self.index.version, version)

    def test_clear_publishes_an_empty_snapshot(self) -> None:
        self.index.clear()

        self.assertEqual(self.index.snapshot().paths, ())


if __name__ == "__main__":
    unittest.main()

import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock

from visionboard.boards import BoardStore
from visionboard.db import InMemoryDbClient
from visionboard.errors import AccessDenied, NotFound, ValidationError
from visionboard.goals import GoalStore, aggregate
from visionboard.storage import InMemoryStorageClient


def _goals(*flags):
    return [SimpleNamespace(is_completed=flag) for flag in flags]


class AggregateTests(unittest.TestCase):
    def test_empty(self):
        stats = aggregate([])
        self.assertEqual((stats.total, stats.completed, stats.pending), (0, 0, 0))
        self.assertEqual(stats.percentage, 0)

    def test_counts_add_up(self):
        for flags in [(True,), (False, False), (True, False, True, False, False)]:
            stats = aggregate(_goals(*flags))
            self.assertEqual(stats.completed + stats.pending, stats.total)
            self.assertGreaterEqual(stats.percentage, 0)
            self.assertLessEqual(stats.percentage, 100)

    def test_display_rounds_half_up(self):
        self.assertEqual(aggregate(_goals(True, False, False)).display_percentage, 33)
        self.assertEqual(aggregate(_goals(True, True, False)).display_percentage, 67)
        self.assertEqual(aggregate(_goals(*([True] + [False] * 7))).display_percentage, 13)
        self.assertEqual(aggregate(_goals(True, True)).display_percentage, 100)


class GoalStoreTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.boards = BoardStore(self.db, InMemoryStorageClient())
        self.goals = GoalStore(self.db, self.boards)
        self.board = self.boards.create_untitled("u1")

    def test_create_trims_and_lists_newest_first(self):
        self.goals.create(self.board.id, "u1", "Run a marathon")
        goal = self.goals.create(self.board.id, "u1", "  Read 12 books ", "")
        self.assertEqual(goal.title, "Read 12 books")
        self.assertIsNone(goal.description)
        listed = self.goals.list_goals(self.board.id, "u1")
        self.assertEqual(listed[0].id, goal.id)
        self.assertFalse(listed[0].is_completed)
        self.assertIsNone(listed[0].completed_at)

    def test_create_rejects_blank_title_before_backend(self):
        db = MagicMock()
        store = GoalStore(db, BoardStore(db, MagicMock()))
        with self.assertRaises(ValidationError):
            store.create("b1", "u1", "   ")
        self.assertEqual(db.mock_calls, [])

    def test_create_on_foreign_board(self):
        with self.assertRaises(AccessDenied):
            self.goals.create(self.board.id, "u2", "Sneaky")

    def test_toggle_twice_restores(self):
        goal = self.goals.create(self.board.id, "u1", "Visit Paris")
        on = self.goals.toggle_completion(goal.id, "u1")
        self.assertTrue(on.is_completed)
        self.assertIsNotNone(on.completed_at)
        off = self.goals.toggle_completion(goal.id, "u1")
        self.assertFalse(off.is_completed)
        self.assertIsNone(off.completed_at)

    def test_two_goals_one_done_is_fifty_percent(self):
        self.assertEqual(self.goals.stats(self.board.id, "u1").percentage, 0)
        first = self.goals.create(self.board.id, "u1", "First")
        self.goals.create(self.board.id, "u1", "Second")
        self.goals.toggle_completion(first.id, "u1")
        self.assertEqual(self.goals.stats(self.board.id, "u1").percentage, 50)

    def test_toggle_and_delete_check_ownership(self):
        goal = self.goals.create(self.board.id, "u1", "Mine")
        with self.assertRaises(AccessDenied):
            self.goals.toggle_completion(goal.id, "u2")
        with self.assertRaises(AccessDenied):
            self.goals.delete(goal.id, "u2", confirmed=True)
        with self.assertRaises(NotFound):
            self.goals.toggle_completion("missing", "u1")

    def test_delete_requires_confirmation(self):
        goal = self.goals.create(self.board.id, "u1", "Temporary")
        with self.assertRaises(ValidationError):
            self.goals.delete(goal.id, "u1", confirmed=False)
        self.assertIsNotNone(self.db.get_goal(goal.id))

        deleted = self.goals.delete(goal.id, "u1", confirmed=True)
        self.assertEqual(deleted.board_id, self.board.id)
        self.assertIsNone(self.db.get_goal(goal.id))
        with self.assertRaises(NotFound):
            self.goals.delete(goal.id, "u1", confirmed=True)


if __name__ == "__main__":
    unittest.main()

import unittest

from visionboard.db import SqlDbClient


class SqlDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL client logic.
    """

    def setUp(self):
        self.db = SqlDbClient("sqlite+pysqlite:///:memory:")

    def test_board_lifecycle(self):
        older = self.db.create_board("u1", "First")
        newer = self.db.create_board("u1", "Second")
        self.db.create_board("u2", "Not mine")

        self.assertEqual([b.id for b in self.db.list_boards("u1")], [newer.id, older.id])
        self.db.update_board_name(older.id, "Renamed")
        self.assertEqual(self.db.get_board(older.id).name, "Renamed")
        self.assertIsNone(self.db.get_board("missing"))

    def test_board_images(self):
        board = self.db.create_board("u1", "Board")
        self.db.insert_board_image(board.id, "boards/u1/a.png", 0)
        self.db.insert_board_image(board.id, "boards/u1/b.png", 1)
        images = self.db.list_board_images(board.id)
        self.assertEqual([i.position_index for i in images], [0, 1])
        self.assertEqual(
            self.db.list_image_paths(), {"boards/u1/a.png", "boards/u1/b.png"}
        )

        self.assertEqual(self.db.delete_board_images(board.id), 2)
        self.assertEqual(self.db.list_board_images(board.id), [])

    def test_goals(self):
        board = self.db.create_board("u1", "Board")
        goal = self.db.create_goal(board.id, "u1", "Visit Paris", None)
        self.assertFalse(goal.is_completed)
        self.assertIsNone(goal.completed_at)
        self.assertEqual(self.db.list_goals(board.id, "u2"), [])

        updated = self.db.update_goal_completion(goal.id, True, 1700000000.0)
        self.assertTrue(updated.is_completed)
        self.assertEqual(updated.completed_at, 1700000000.0)
        self.assertIsNone(self.db.update_goal_completion("missing", True, None))

        self.assertTrue(self.db.delete_goal(goal.id))
        self.assertFalse(self.db.delete_goal(goal.id))
        self.assertIsNone(self.db.get_goal(goal.id))


if __name__ == "__main__":
    unittest.main()

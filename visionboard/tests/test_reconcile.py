import unittest
from unittest.mock import patch

from visionboard.boards import SLOT_COUNT, BoardStore, UploadedImage
from visionboard.db import InMemoryDbClient
from visionboard.errors import BackendError
from visionboard.reconcile import main, reconcile, uploaded_at
from visionboard.storage import InMemoryStorageClient


class ReconcileTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        board = self.db.create_board("u1", "Board")
        self.db.insert_board_image(board.id, "boards/u1/b/kept.png", 0)
        for path in ("boards/u1/b/kept.png", "boards/u1/b/orphan.png", "avatars/u1.png"):
            self.storage.upload_bytes(path, b"x")

    def test_deletes_only_unreferenced_objects_under_prefix(self):
        report = reconcile(self.db, self.storage)
        self.assertEqual(report.scanned, 2)
        self.assertEqual(report.deleted, ["boards/u1/b/orphan.png"])
        self.assertEqual(
            self.storage.list_paths(), ["avatars/u1.png", "boards/u1/b/kept.png"]
        )

    def test_dry_run_deletes_nothing(self):
        report = reconcile(self.db, self.storage, dry_run=True)
        self.assertEqual(report.orphaned, ["boards/u1/b/orphan.png"])
        self.assertEqual(report.deleted, [])
        self.assertEqual(len(self.storage.list_paths()), 3)

    def test_failed_delete_is_reported(self):
        with patch.object(self.storage, "delete", side_effect=BackendError("denied")):
            report = reconcile(self.db, self.storage)
        self.assertEqual(report.failed, ["boards/u1/b/orphan.png"])
        self.assertEqual(report.deleted, [])

    def test_main_uses_configured_clients(self):
        with patch("visionboard.reconcile.get_db_client", return_value=self.db), patch(
            "visionboard.reconcile.get_storage_client", return_value=self.storage
        ):
            self.assertEqual(main(["--dry-run"]), 0)
            self.assertEqual(len(self.storage.list_paths()), 3)
            self.assertEqual(main(["--prefix", "boards/u1/"]), 0)
        self.assertNotIn("boards/u1/b/orphan.png", self.storage.list_paths())

    def test_fresh_unreferenced_object_survives(self):
        fresh = "boards/u1/b/image_0_1700000000000.png"
        self.storage.upload_bytes(fresh, b"x")
        report = reconcile(self.db, self.storage, now=1700000000.0 + 60)
        self.assertEqual(report.recent, [fresh])
        self.assertIn(fresh, self.storage.list_paths())
        self.assertEqual(report.deleted, ["boards/u1/b/orphan.png"])

        later = reconcile(self.db, self.storage, now=1700000000.0 + 7200)
        self.assertEqual(later.deleted, [fresh])

    def test_sweep_during_save_keeps_in_flight_uploads(self):
        store = BoardStore(self.db, self.storage)
        upload = self.storage.upload_bytes

        def upload_then_sweep(path, data, **kwargs):
            upload(path, data, **kwargs)
            reconcile(self.db, self.storage)

        with patch.object(self.storage, "upload_bytes", side_effect=upload_then_sweep):
            result = store.save("u1", "Board", [UploadedImage(content=b"img")] * SLOT_COUNT)

        loaded = store.load(result.board_id, "u1")
        for slot in loaded.slots:
            self.assertEqual(self.storage.get_bytes(slot.path), b"img")

    def test_uploaded_at_reads_path_timestamp(self):
        self.assertEqual(uploaded_at("boards/u/b/image_3_1700000000500.png"), 1700000000.5)
        self.assertIsNone(uploaded_at("boards/u/b/manual.png"))


if __name__ == "__main__":
    unittest.main()

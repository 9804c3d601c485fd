import io
import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError, EndpointConnectionError
from redis.exceptions import ConnectionError as RedisConnectionError

from visionboard.errors import BackendError, NotFound
from visionboard.local_store import RedisLocalStore
from visionboard.storage import InMemoryStorageClient, S3StorageClient


def _client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "GetObject")


class InMemoryStorageClientTests(unittest.TestCase):
    def test_upload_presign_and_list(self):
        storage = InMemoryStorageClient()
        storage.upload_bytes("boards/u1/b/a.png", b"a", content_type="image/png", cache_control="3600")
        storage.upload_bytes("other/x.png", b"x")
        self.assertEqual(storage.list_paths("boards/"), ["boards/u1/b/a.png"])
        self.assertEqual(storage.stored_objects["boards/u1/b/a.png"].cache_control, "3600")
        self.assertIn("boards/u1/b/a.png", storage.presign_get("boards/u1/b/a.png", expires_in=60))
        with self.assertRaises(NotFound):
            storage.get_bytes("boards/missing.png")


class S3StorageClientTests(unittest.TestCase):
    def setUp(self):
        patcher = patch("visionboard.storage.boto3.client")
        self.boto_client = patcher.start().return_value
        self.addCleanup(patcher.stop)
        self.storage = S3StorageClient(
            bucket="vision-boards",
            region="us-east-1",
            endpoint="https://storage.example.test",
            access_key_id="key",
            secret_access_key="secret",
        )

    def test_presign_get(self):
        self.boto_client.generate_presigned_url.return_value = "https://signed"
        self.assertEqual(self.storage.presign_get("boards/u1/a.png", expires_in=600), "https://signed")
        self.boto_client.generate_presigned_url.assert_called_once_with(
            ClientMethod="get_object",
            Params={"Bucket": "vision-boards", "Key": "boards/u1/a.png"},
            ExpiresIn=600,
        )

    def test_upload_sets_cache_control(self):
        self.storage.upload_bytes("boards/u1/a.png", b"png", content_type="image/png", cache_control="3600")
        kwargs = self.boto_client.put_object.call_args.kwargs
        self.assertEqual(kwargs["CacheControl"], "3600")
        self.assertEqual(kwargs["ContentType"], "image/png")

    def test_get_bytes_translates_errors(self):
        self.boto_client.get_object.return_value = {"Body": io.BytesIO(b"data")}
        self.assertEqual(self.storage.get_bytes("boards/u1/a.png"), b"data")

        self.boto_client.get_object.side_effect = _client_error("NoSuchKey")
        with self.assertRaises(NotFound):
            self.storage.get_bytes("boards/u1/a.png")

        self.boto_client.get_object.side_effect = _client_error("AccessDenied")
        with self.assertRaises(BackendError):
            self.storage.get_bytes("boards/u1/a.png")

        self.boto_client.get_object.side_effect = EndpointConnectionError(endpoint_url="https://x")
        with self.assertRaises(BackendError):
            self.storage.get_bytes("boards/u1/a.png")

    def test_list_paths_follows_pages(self):
        paginator = MagicMock()
        paginator.paginate.return_value = [
            {"Contents": [{"Key": "boards/a.png"}]},
            {"Contents": [{"Key": "boards/b.png"}]},
            {},
        ]
        self.boto_client.get_paginator.return_value = paginator
        self.assertEqual(self.storage.list_paths("boards/"), ["boards/a.png", "boards/b.png"])
        paginator.paginate.assert_called_once_with(Bucket="vision-boards", Prefix="boards/")


class RedisLocalStoreTests(unittest.TestCase):
    def setUp(self):
        patcher = patch("visionboard.local_store.redis.Redis.from_url")
        self.redis = patcher.start().return_value
        self.addCleanup(patcher.stop)
        self.store = RedisLocalStore(url="redis://localhost:6379/0", key_prefix="demo")

    def test_one_hash_per_profile(self):
        self.redis.hget.return_value = "My board"
        self.assertEqual(self.store.get_item("p1", "demo_vb_name"), "My board")
        self.redis.hget.assert_called_once_with("demo:p1", "demo_vb_name")
        self.store.set_item("p1", "demo_vb_name", "x")
        self.redis.hset.assert_called_once_with("demo:p1", "demo_vb_name", "x")
        self.store.remove_item("p1", "demo_vb_name")
        self.redis.hdel.assert_called_once_with("demo:p1", "demo_vb_name")

    def test_redis_errors_become_backend_errors(self):
        self.redis.hget.side_effect = RedisConnectionError("refused")
        with self.assertRaises(BackendError):
            self.store.get_item("p1", "demo_vb_name")


if __name__ == "__main__":
    unittest.main()

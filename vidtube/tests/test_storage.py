import os
import tempfile
import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from vidtube.storage import (
    AssetUploadError,
    InMemoryAssetStorage,
    S3AssetStorage,
    build_object_key,
    key_from_url,
)


class KeyTests(unittest.TestCase):
    def test_build_object_key_keeps_extension(self):
        key = build_object_key("/avatars/", "Me.PNG")
        self.assertTrue(key.startswith("avatars/"))
        self.assertTrue(key.endswith(".png"))

    def test_key_from_url(self):
        base = "https://cdn.example.test/media"
        self.assertEqual(
            key_from_url(base, "https://cdn.example.test/media/avatars/x.png"),
            "avatars/x.png",
        )
        self.assertIsNone(key_from_url(base, "https://other.test/media/avatars/x.png"))
        self.assertIsNone(key_from_url(base, "https://cdn.example.test/elsewhere/x.png"))
        self.assertIsNone(key_from_url(base, ""))


class InMemoryAssetStorageTests(unittest.TestCase):
    def test_upload_and_delete(self):
        storage = InMemoryAssetStorage()
        with tempfile.NamedTemporaryFile(suffix=".png", delete=False) as f:
            f.write(b"data")
        try:
            url = storage.upload_file(f.name, "avatars", "a.png")
        finally:
            os.unlink(f.name)
        self.assertEqual(list(storage.stored_objects.values()), [b"data"])
        self.assertTrue(storage.delete_url(url))
        self.assertFalse(storage.delete_url(url))


class S3AssetStorageTests(unittest.TestCase):
    def make_storage(self, client):
        with patch("vidtube.storage.boto3.client", return_value=client):
            return S3AssetStorage(
                bucket="media",
                region="us-east-1",
                endpoint="https://s3.example.test",
                access_key_id="key",
                secret_access_key="secret",
            )

    def test_upload_returns_public_url(self):
        client = MagicMock()
        storage = self.make_storage(client)
        url = storage.upload_file("/tmp/a.png", "avatars", "a.png", content_type="image/png")
        self.assertTrue(url.startswith("https://media.s3.example.test/avatars/"))
        args, kwargs = client.upload_file.call_args
        self.assertEqual(args[1], "media")
        self.assertEqual(kwargs["ExtraArgs"], {"ContentType": "image/png"})

    def test_upload_failure_is_wrapped(self):
        client = MagicMock()
        client.upload_file.side_effect = ClientError(
            {"Error": {"Code": "500", "Message": "boom"}}, "PutObject"
        )
        storage = self.make_storage(client)
        with self.assertRaises(AssetUploadError):
            storage.upload_file("/tmp/a.png", "avatars", "a.png")

    def test_delete_only_own_urls(self):
        client = MagicMock()
        storage = self.make_storage(client)
        self.assertFalse(storage.delete_url("https://elsewhere.test/x.png"))
        client.delete_object.assert_not_called()
        self.assertTrue(storage.delete_url("https://media.s3.example.test/avatars/x.png"))
        client.delete_object.assert_called_once_with(Bucket="media", Key="avatars/x.png")


if __name__ == "__main__":
    unittest.main()

import unittest
from unittest.mock import patch

from messverse.exceptions import UpstreamFailure
from messverse.media import CloudinaryMediaStore, InMemoryMediaStore, UploadOptions


class CloudinaryMediaStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = CloudinaryMediaStore(
            cloud_name="demo", api_key="key", api_secret="secret"
        )

    @patch("messverse.media.cloudinary.uploader.upload")
    def test_upload_passes_transformation(self, mock_upload):
        mock_upload.return_value = {
            "secure_url": "https://res.cloudinary.com/demo/image/upload/v1/p.jpg",
            "public_id": "mess_verse/members/portrait_alice",
        }
        options = UploadOptions(
            folder="mess_verse/members",
            public_id="portrait_alice",
            overwrite=True,
            max_width=1200,
            max_height=1200,
        )
        result = self.store.upload(b"bytes", options)

        self.assertEqual(result.asset_id, "mess_verse/members/portrait_alice")
        self.assertTrue(result.url.startswith("https://"))
        _, kwargs = mock_upload.call_args
        self.assertEqual(kwargs["resource_type"], "image")
        self.assertEqual(kwargs["public_id"], "portrait_alice")
        self.assertTrue(kwargs["overwrite"])
        self.assertEqual(
            kwargs["transformation"],
            [
                {"width": 1200, "height": 1200, "crop": "limit"},
                {"quality": "auto"},
                {"fetch_format": "auto"},
            ],
        )

    @patch("messverse.media.cloudinary.uploader.upload")
    def test_upload_without_public_id(self, mock_upload):
        mock_upload.return_value = {"secure_url": "https://x", "public_id": "m/abc"}
        self.store.upload(b"bytes", UploadOptions(folder="m"))
        _, kwargs = mock_upload.call_args
        self.assertNotIn("public_id", kwargs)
        self.assertFalse(kwargs["overwrite"])

    @patch("messverse.media.cloudinary.uploader.upload")
    def test_upload_errors_become_upstream_failures(self, mock_upload):
        mock_upload.side_effect = RuntimeError("boom")
        with self.assertRaises(UpstreamFailure) as ctx:
            self.store.upload(b"bytes", UploadOptions(folder="m"))
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)

        mock_upload.side_effect = None
        mock_upload.return_value = {"error": "nope"}
        with self.assertRaises(UpstreamFailure):
            self.store.upload(b"bytes", UploadOptions(folder="m"))

    @patch("messverse.media.cloudinary.uploader.destroy")
    def test_delete_is_best_effort(self, mock_destroy):
        mock_destroy.return_value = {"result": "ok"}
        self.assertTrue(self.store.delete("m/abc"))

        mock_destroy.return_value = {"result": "not found"}
        self.assertFalse(self.store.delete("m/abc"))

        mock_destroy.side_effect = RuntimeError("network down")
        with self.assertLogs("messverse.media", level="WARNING"):
            self.assertFalse(self.store.delete("m/abc"))


class InMemoryMediaStoreTests(unittest.TestCase):
    def test_overwrite_reuses_asset_id(self):
        store = InMemoryMediaStore()
        options = UploadOptions(folder="f", public_id="p", overwrite=True)
        first = store.upload(b"1", options)
        second = store.upload(b"2", options)
        self.assertEqual(first.asset_id, second.asset_id)
        self.assertNotEqual(first.url, second.url)
        self.assertEqual(store.assets["f/p"], b"2")

    def test_existing_public_id_without_overwrite_fails(self):
        store = InMemoryMediaStore()
        store.upload(b"1", UploadOptions(folder="f", public_id="p"))
        with self.assertRaises(UpstreamFailure):
            store.upload(b"2", UploadOptions(folder="f", public_id="p"))


if __name__ == "__main__":
    unittest.main()

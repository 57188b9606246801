from unittest.mock import patch

from django.test import SimpleTestCase

from bundles import cloudinary_utils


class PublicIdFromUrlTests(SimpleTestCase):
    def test_plain_upload_url(self):
        url = "https://res.cloudinary.com/demo/image/upload/v1712345678/bundles/abc123.jpg"
        self.assertEqual(cloudinary_utils.public_id_from_url(url), "bundles/abc123")

    def test_transformations_are_skipped(self):
        url = "https://res.cloudinary.com/demo/image/upload/c_fill,w_400/q_auto/v17/bundles/abc123.png"
        self.assertEqual(cloudinary_utils.public_id_from_url(url), "bundles/abc123")

    def test_local_media_url(self):
        self.assertIsNone(cloudinary_utils.public_id_from_url("/media/bundles/abc123.png"))


class CloudinaryDeliveryTests(SimpleTestCase):
    def test_local_url_is_returned_unchanged(self):
        url = "/media/bundles/abc123.png"
        self.assertEqual(cloudinary_utils.get_optimized_image_url(url, width=400, height=400), url)

    @patch("bundles.cloudinary_utils._ensure_cloudinary_configured", return_value=True)
    @patch("cloudinary.uploader.destroy", return_value={"result": "not found"})
    def test_delete_treats_missing_asset_as_gone(self, destroy, _configured):
        url = "https://res.cloudinary.com/demo/image/upload/v1/bundles/abc123.jpg"

        self.assertTrue(cloudinary_utils.delete_image_from_cloudinary(url))
        destroy.assert_called_once_with("bundles/abc123", resource_type="image")

    @patch("bundles.cloudinary_utils._ensure_cloudinary_configured", return_value=False)
    def test_upload_without_credentials_fails(self, _configured):
        with self.assertRaises(ValueError):
            cloudinary_utils.upload_image_to_cloudinary(object(), "bundles")

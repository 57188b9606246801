"""Where bundle image files live: Cloudinary in production, Django's default storage otherwise."""
import logging
import os
import uuid

from django.conf import settings
from django.core.files.storage import default_storage

from bundles import cloudinary_utils

logger = logging.getLogger(__name__)


class BundleImageStorage:
    folder = 'bundles'

    def __init__(self, use_cloudinary=None):
        if use_cloudinary is None:
            use_cloudinary = getattr(settings, 'USE_CLOUDINARY', False)
        self.use_cloudinary = use_cloudinary

    def store(self, file_obj):
        """Persist an uploaded file and return its public URL."""
        if self.use_cloudinary:
            _, url = cloudinary_utils.upload_image_to_cloudinary(file_obj, self.folder)
            return url
        ext = os.path.splitext(getattr(file_obj, 'name', '') or '')[1].lower()
        name = default_storage.save(f"{self.folder}/{uuid.uuid4().hex}{ext}", file_obj)
        return default_storage.url(name)

    def delete(self, url):
        """Remove a previously stored file. Failures are logged, the row is gone either way."""
        if cloudinary_utils.is_cloudinary_url(url):
            return cloudinary_utils.delete_image_from_cloudinary(url)
        media_url = settings.MEDIA_URL
        if not url or not url.startswith(media_url):
            logger.warning("Bundle image URL %s is not managed by this storage", url)
            return False
        name = url[len(media_url):]
        try:
            default_storage.delete(name)
        except OSError as e:
            logger.error("Failed to delete bundle image %s: %s", name, e)
            return False
        return True

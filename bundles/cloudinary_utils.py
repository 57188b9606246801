"""
Cloudinary helpers for bundle images: upload, delete and transformed delivery URLs.
"""
import os
import logging
import re
import uuid
import cloudinary
import cloudinary.uploader

logger = logging.getLogger(__name__)

_cloudinary_configured = False

_VERSION_SEGMENT = re.compile(r'^v\d+$')


def _ensure_cloudinary_configured():
    """Ensure Cloudinary is configured with credentials from environment."""
    global _cloudinary_configured

    if _cloudinary_configured:
        return True

    cloud_name = os.environ.get('CLOUDINARY_CLOUD_NAME')
    api_key = os.environ.get('CLOUDINARY_API_KEY')
    api_secret = os.environ.get('CLOUDINARY_API_SECRET')

    if not all([cloud_name, api_key, api_secret]):
        logger.warning(
            "Cloudinary credentials not fully configured. "
            "Set CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, and CLOUDINARY_API_SECRET environment variables."
        )
        return False

    try:
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True
        )
        _cloudinary_configured = True
        logger.info("Cloudinary configured successfully")
        return True
    except Exception as e:
        logger.error(f"Failed to configure Cloudinary: {e}")
        return False


def is_cloudinary_url(url):
    return bool(url) and 'res.cloudinary.com' in url


def upload_image_to_cloudinary(file_obj, folder):
    """
    Upload an image file to Cloudinary under `folder`.

    Returns a tuple of (public_id, secure_url).
    """
    if not file_obj:
        return None, None

    if not _ensure_cloudinary_configured():
        raise ValueError("Cloudinary is not configured")

    result = cloudinary.uploader.upload(
        file_obj,
        folder=folder.strip('/'),
        public_id=uuid.uuid4().hex,
        resource_type='image',
    )
    logger.info(f"Uploaded bundle image to Cloudinary: {result.get('public_id')}")
    return result['public_id'], result['secure_url']


def public_id_from_url(url):
    """
    Extract the public_id from a delivery URL such as
    https://res.cloudinary.com/<cloud>/image/upload/c_fill,w_300/v1712/bundles/abc123.jpg
    """
    if not is_cloudinary_url(url) or '/upload/' not in url:
        return None
    segments = url.split('/upload/', 1)[1].split('?', 1)[0].split('/')
    # Drop transformation segments up to and including the version segment
    for index, segment in enumerate(segments):
        if _VERSION_SEGMENT.match(segment):
            segments = segments[index + 1:]
            break
    path = '/'.join(segments)
    if '.' in path.rsplit('/', 1)[-1]:
        path = path.rsplit('.', 1)[0]
    return path or None


def delete_image_from_cloudinary(url):
    """Delete the asset behind a delivery URL. Returns True when Cloudinary reports it gone."""
    public_id = public_id_from_url(url)
    if not public_id:
        logger.warning(f"Not a Cloudinary image URL, nothing to delete: {url}")
        return False
    if not _ensure_cloudinary_configured():
        return False
    try:
        result = cloudinary.uploader.destroy(public_id, resource_type='image')
    except Exception as e:
        logger.error(f"Failed to delete Cloudinary image '{public_id}': {e}")
        return False
    return result.get('result') in ('ok', 'not found')


def get_optimized_image_url(url, width=None, height=None, quality='auto', format='auto', crop='fill'):
    """
    Delivery URL with size/quality transformations for a stored Cloudinary image.
    Non-Cloudinary URLs (local media) are returned unchanged.
    """
    public_id = public_id_from_url(url)
    if not public_id or not _ensure_cloudinary_configured():
        return url

    transformation = {'quality': quality, 'fetch_format': format}
    if width:
        transformation['width'] = width
    if height:
        transformation['height'] = height
    if width or height:
        transformation['crop'] = crop

    try:
        from cloudinary import CloudinaryImage
        return CloudinaryImage(public_id).build_url(transformation=[transformation], secure=True)
    except Exception as e:
        logger.warning(f"Failed to build Cloudinary URL for '{public_id}': {e}")
        return url

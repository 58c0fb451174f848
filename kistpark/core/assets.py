"""
Asset Pipeline
==============

Turns the image lists sent by the admin client into stored URLs, and
removes images from storage once no record references them. Host
failures are logged and never fail the owning request.
"""

import logging
import threading
import uuid

from flask import current_app

from .config import get_config_value
from .images import ImageProcessingError, is_data_uri, prepare_data_uri
from .logging_service import db_log
from .storage import delete_file, is_managed_url, upload_file

logger = logging.getLogger(__name__)

# Config keys per storage subfolder
IMAGE_PROFILES = {
    'highlights': {
        'max_images': 'HIGHLIGHT_MAX_IMAGES',
        'max_bytes': 'HIGHLIGHT_MAX_IMAGE_BYTES',
        'width': 'HIGHLIGHT_IMAGE_WIDTH',
        'quality': 'HIGHLIGHT_IMAGE_QUALITY',
    },
    'press-releases': {
        'max_bytes': 'PRESS_RELEASE_MAX_IMAGE_BYTES',
        'width': 'PRESS_RELEASE_IMAGE_WIDTH',
        'quality': 'PRESS_RELEASE_IMAGE_QUALITY',
    },
}

# URLs this process already removed from storage
_deleted_urls = set()
_deleted_lock = threading.Lock()
_DELETED_CACHE_LIMIT = 1000


def _profile(subfolder):
    return {name: int(get_config_value(key)) for name, key in IMAGE_PROFILES[subfolder].items()}


def max_images_for(subfolder):
    return _profile(subfolder).get('max_images', 1)


def upload_data_uri(data_uri, subfolder):
    """Prepare and store one data URI. Returns the public URL or None."""
    profile = _profile(subfolder)
    try:
        image_bytes, ext = prepare_data_uri(
            data_uri,
            max_bytes=profile['max_bytes'],
            budget_bytes=int(get_config_value('UPLOAD_BUDGET_BYTES')),
            max_width=profile['width'],
            quality=profile['quality'],
        )
        return upload_file(image_bytes, f"{uuid.uuid4().hex}.{ext}", subfolder)
    except ImageProcessingError as e:
        logger.warning(f"Skipping {subfolder} image: {e}")
        db_log('WARNING', 'assets', f"Skipped image: {e}", {'subfolder': subfolder})
        return None
    except Exception as e:
        logger.error(f"Image upload to {subfolder} failed: {e}")
        db_log('ERROR', 'assets', f"Image upload failed: {e}", {'subfolder': subfolder})
        return None


def process_images(images, subfolder, max_images=None):
    """Resolve a client image list to stored URLs.

    Existing URLs pass through untouched, data URIs are uploaded and
    anything else is dropped. Only the first max_images entries count
    (the configured limit for the subfolder unless given).

    Returns:
        (urls, dropped) where dropped is how many inputs produced no URL.
    """
    if max_images is None:
        max_images = _profile(subfolder).get('max_images', 1)
    urls = []
    dropped = 0

    for index, image in enumerate(images or []):
        url = None
        if index < max_images:
            if is_data_uri(image):
                url = upload_data_uri(image, subfolder)
            elif isinstance(image, str) and image.strip():
                url = image.strip()
        if url:
            urls.append(url)
        else:
            dropped += 1

    return urls, dropped


def delete_asset(url):
    """Remove one stored image. Returns True when the host deleted it."""
    with _deleted_lock:
        if url in _deleted_urls:
            return False

    try:
        deleted = delete_file(url)
    except Exception as e:
        logger.warning(f"Failed to delete image {url}: {e}")
        db_log('WARNING', 'assets', f"Failed to delete image: {e}", {'url': url})
        return False

    if deleted:
        with _deleted_lock:
            if len(_deleted_urls) >= _DELETED_CACHE_LIMIT:
                _deleted_urls.clear()
            _deleted_urls.add(url)
    return deleted


def _cleanup(urls):
    deleted = sum(1 for url in urls if delete_asset(url))
    if deleted:
        logger.info(f"Removed {deleted} unused image(s)")
    return deleted


def _cleanup_in_context(app, urls):
    with app.app_context():
        _cleanup(urls)


def schedule_asset_cleanup(urls):
    """Delete images no record references any more, in the background.

    Only managed URLs are considered. Runs inline when ASSET_CLEANUP_SYNC
    is set. Returns the worker thread, or None when nothing was started.
    """
    stale = []
    for url in urls or []:
        if is_managed_url(url) and url not in stale:
            stale.append(url)
    if not stale:
        return None

    if get_config_value('ASSET_CLEANUP_SYNC'):
        _cleanup(stale)
        return None

    worker = threading.Thread(
        target=_cleanup_in_context,
        args=(current_app._get_current_object(), stale),
        daemon=True,
    )
    worker.start()
    return worker

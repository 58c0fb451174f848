"""
Storage Utility
===============

Image upload/delete with cloud (DigitalOcean Spaces or any S3-compatible
host) / local branching.
"""

import mimetypes
import os
from urllib.parse import urlparse

import boto3
from botocore.config import Config as BotoConfig
from flask import current_app

from .config import get_config_value

CONTENT_TYPES = {
    'jpg': 'image/jpeg', 'jpeg': 'image/jpeg',
    'png': 'image/png', 'gif': 'image/gif', 'webp': 'image/webp',
}


def is_cloud_storage():
    return str(get_config_value('STORAGE_TYPE', 'local')).lower() == 'cloud'


def get_spaces_config():
    return {
        'region': get_config_value('SPACES_REGION'),
        'space_name': get_config_value('SPACES_NAME'),
        'access_key': get_config_value('SPACES_KEY'),
        'secret_key': get_config_value('SPACES_SECRET'),
        'folder': get_config_value('SPACES_FOLDER', 'uploads') or 'uploads',
    }


def _spaces_host(config):
    return f"{config['space_name']}.{config['region']}.digitaloceanspaces.com"


def _spaces_client(config):
    timeout = int(get_config_value('STORAGE_TIMEOUT', 30))
    return boto3.client(
        's3',
        region_name=config['region'],
        endpoint_url=f"https://{config['region']}.digitaloceanspaces.com",
        aws_access_key_id=config['access_key'],
        aws_secret_access_key=config['secret_key'],
        config=BotoConfig(connect_timeout=timeout, read_timeout=timeout, retries={'max_attempts': 1}),
    )


def _static_root():
    return get_config_value('STATIC_FOLDER') or current_app.static_folder


def upload_file(file_bytes, filename, subfolder):
    """Upload file to cloud storage or local filesystem.

    Args:
        file_bytes: Raw bytes of the processed file.
        filename: Target filename (e.g. "abc123.jpg").
        subfolder: Subfolder name (e.g. "highlights", "press-releases").

    Returns:
        Public URL (cloud) or local path like "/static/highlights/abc.jpg" (local).
    """
    if is_cloud_storage():
        return _upload_to_spaces(file_bytes, filename, subfolder)
    return _save_locally(file_bytes, filename, subfolder)


def _upload_to_spaces(file_bytes, filename, subfolder):
    """Upload to DigitalOcean Spaces via boto3."""
    config = get_spaces_config()
    object_key = f"{config['folder']}/{subfolder}/{filename}"

    ext = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''
    content_type = CONTENT_TYPES.get(ext) or mimetypes.guess_type(filename)[0] or 'application/octet-stream'

    _spaces_client(config).put_object(
        Bucket=config['space_name'],
        Key=object_key,
        Body=file_bytes,
        ACL='public-read',
        ContentType=content_type,
    )

    return f"https://{_spaces_host(config)}/{object_key}"


def _save_locally(file_bytes, filename, subfolder):
    """Save to local static folder."""
    upload_dir = os.path.join(_static_root(), subfolder)
    os.makedirs(upload_dir, exist_ok=True)
    with open(os.path.join(upload_dir, filename), 'wb') as f:
        f.write(file_bytes)
    return f"/static/{subfolder}/{filename}"


def is_managed_url(file_url):
    """True when the URL points into this deployment's own storage."""
    if not isinstance(file_url, str) or not file_url:
        return False
    if file_url.startswith('/static/'):
        return True
    parsed = urlparse(file_url)
    if parsed.scheme not in ('http', 'https'):
        return False
    if not is_cloud_storage():
        return False
    return parsed.netloc == _spaces_host(get_spaces_config())


def object_key_from_url(file_url):
    """Object key is the URL path without its leading slash."""
    return urlparse(file_url).path.lstrip('/')


def delete_file(file_url):
    """Delete a file by its URL (cloud or local).

    Returns True when something was deleted, raises on host errors.
    """
    if not file_url:
        return False

    if file_url.startswith('/static/'):
        return _delete_local_file(file_url)
    return _delete_cloud_file(file_url)


def _delete_cloud_file(file_url):
    """Delete a file from DigitalOcean Spaces."""
    config = get_spaces_config()
    _spaces_client(config).delete_object(Bucket=config['space_name'], Key=object_key_from_url(file_url))
    return True


def _delete_local_file(file_url):
    """Delete a file from the local static folder."""
    root = os.path.realpath(_static_root())
    full_path = os.path.realpath(os.path.join(root, file_url[len('/static/'):]))
    # Never follow ../ outside the upload root
    if not full_path.startswith(root + os.sep):
        return False
    if os.path.isfile(full_path):
        os.unlink(full_path)
        return True
    return False

"""
Image Processing
================

Prepares images sent by the admin client as base64 data URIs:
decode, shrink to the upload budget, then cap the width before upload.
"""

import base64
import binascii
import io
import re

from PIL import Image, ImageOps, ImageSequence, UnidentifiedImageError

DATA_URI_REGEX = re.compile(
    r'^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w.+-]+=[\w.+-]+)*(?P<base64>;base64)?,(?P<data>.*)$',
    re.DOTALL
)

# Pillow format -> file extension for formats we write back unchanged
WRITABLE_FORMATS = {'JPEG': 'jpg', 'PNG': 'png', 'WEBP': 'webp', 'GIF': 'gif'}

MB = 1024 * 1024


class ImageProcessingError(Exception):
    """Image could not be decoded or re-encoded"""


class ImageTooLargeError(ImageProcessingError):
    """Image does not fit the configured size limits"""


def is_data_uri(value):
    return isinstance(value, str) and value.startswith('data:')


def estimated_size(data_uri):
    """Decoded size estimate from the base64 payload length"""
    payload = data_uri.split(',', 1)[1] if ',' in data_uri else data_uri
    return len(payload) * 3 // 4


def _format_mb(size):
    return f"{size / MB:g}MB"


def decode_data_uri(data_uri):
    """Return (bytes, mime type) for a base64 image data URI"""
    match = DATA_URI_REGEX.match(data_uri or '')
    if not match or not match.group('base64'):
        raise ImageProcessingError('Not a base64 data URI')

    mime = match.group('mime') or ''
    if not mime.startswith('image/'):
        raise ImageProcessingError(f'Unsupported content type: {mime or "unknown"}')

    payload = re.sub(r'\s+', '', match.group('data'))
    try:
        image_bytes = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageProcessingError(f'Invalid base64 payload: {e}') from e
    if not image_bytes:
        raise ImageProcessingError('Empty image payload')
    return image_bytes, mime


def _open(image_bytes):
    try:
        img = Image.open(io.BytesIO(image_bytes))
        fmt = img.format if img.format in WRITABLE_FORMATS else 'JPEG'
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ImageProcessingError(f'Unreadable image: {e}') from e
    # Camera photos carry their rotation in EXIF
    return ImageOps.exif_transpose(img), fmt


def _encode(img, fmt, quality):
    if fmt == 'JPEG' and img.mode not in ('RGB', 'L'):
        img = img.convert('RGB')
    elif fmt in ('PNG', 'WEBP') and img.mode == 'CMYK':
        img = img.convert('RGB')

    buf = io.BytesIO()
    if fmt in ('JPEG', 'WEBP'):
        img.save(buf, format=fmt, quality=quality)
    elif fmt == 'PNG':
        img.save(buf, format=fmt, optimize=True)
    else:
        img.save(buf, format=fmt)
    return buf.getvalue()


def _open_animation(image_bytes):
    """The decoded image when it is a multi-frame GIF, else None"""
    try:
        img = Image.open(io.BytesIO(image_bytes))
    except (UnidentifiedImageError, OSError) as e:
        raise ImageProcessingError(f'Unreadable image: {e}') from e
    if img.format == 'GIF' and getattr(img, 'is_animated', False):
        return img
    return None


def _encode_animation(img, size):
    """Re-encode every frame of an animated GIF at size"""
    frames = []
    durations = []
    try:
        for frame in ImageSequence.Iterator(img):
            durations.append(frame.info.get('duration', 100))
            frame = frame.convert('RGBA')
            frames.append(frame if frame.size == size else frame.resize(size, Image.LANCZOS))
    except (OSError, ValueError) as e:
        raise ImageProcessingError(f'Unreadable animation: {e}') from e

    buf = io.BytesIO()
    frames[0].save(
        buf, format='GIF', save_all=True, append_images=frames[1:],
        loop=img.info.get('loop', 0), duration=durations, disposal=2,
    )
    return buf.getvalue()


def downscale_to_budget(image_bytes, max_bytes, max_iterations=10,
                        initial_quality=90, min_quality=50, quality_step=10, scale=0.9):
    """Shrink an image until its encoding fits max_bytes.

    The first pass re-encodes at full size; each later pass scales both
    dimensions to 90% and lowers the quality by one step, never below
    min_quality. Bytes that already fit are returned untouched.

    Raises:
        ImageTooLargeError: still over budget after max_iterations passes.
    """
    if len(image_bytes) <= max_bytes:
        return image_bytes

    animation = _open_animation(image_bytes)
    img, fmt = _open(image_bytes)
    width, height = img.size
    quality = initial_quality

    for iteration in range(max_iterations):
        if iteration > 0:
            width = max(int(width * scale), 1)
            height = max(int(height * scale), 1)
            quality = max(quality - quality_step, min_quality)

        if animation is not None:
            encoded = _encode_animation(animation, (width, height))
            if len(encoded) <= max_bytes:
                return encoded
            continue

        candidate = img if (width, height) == img.size else img.resize((width, height), Image.LANCZOS)
        encoded = _encode(candidate, fmt, quality)
        if len(encoded) <= max_bytes:
            return encoded

    raise ImageTooLargeError(f'Could not reduce image below {_format_mb(max_bytes)}')


def limit_width(image_bytes, max_width, quality):
    """Resize proportionally so width <= max_width (never enlarges).

    Returns (bytes, extension).
    """
    animation = _open_animation(image_bytes)
    if animation is not None:
        if not max_width or animation.width <= max_width:
            return image_bytes, 'gif'
        height = max(round(animation.height * max_width / animation.width), 1)
        return _encode_animation(animation, (max_width, height)), 'gif'

    img, fmt = _open(image_bytes)
    if max_width and img.width > max_width:
        height = max(round(img.height * max_width / img.width), 1)
        img = img.resize((max_width, height), Image.LANCZOS)
    return _encode(img, fmt, quality), WRITABLE_FORMATS[fmt]


def prepare_data_uri(data_uri, max_bytes, budget_bytes, max_width, quality):
    """Full pipeline for one data URI: size check, decode, budget, width.

    Returns (bytes, extension) ready for storage.upload_file.
    """
    if estimated_size(data_uri) > max_bytes:
        raise ImageTooLargeError(f'Image exceeds the {_format_mb(max_bytes)} limit')

    image_bytes, _mime = decode_data_uri(data_uri)
    image_bytes = downscale_to_budget(image_bytes, budget_bytes)
    return limit_width(image_bytes, max_width, quality)

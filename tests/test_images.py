"""
Image Processing Tests
======================

Data URI decoding, the downscale-to-budget loop and the width limit.
"""

import io
import os

import pytest
from PIL import Image

from kistpark.core.images import (
    ImageProcessingError, ImageTooLargeError, decode_data_uri, downscale_to_budget,
    estimated_size, is_data_uri, limit_width, prepare_data_uri,
)


def open_image(raw):
    return Image.open(io.BytesIO(raw))


def animated_gif(width, height, noise=False):
    """Three-frame looping GIF with a distinct colour per frame."""
    if noise:
        frames = [Image.frombytes("RGB", (width, height), os.urandom(width * height * 3)) for _ in range(3)]
    else:
        frames = [Image.new("RGB", (width, height), color) for color in ("red", "green", "blue")]
    buf = io.BytesIO()
    frames[0].save(buf, format="GIF", save_all=True, append_images=frames[1:], duration=120, loop=0)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Data URIs
# ---------------------------------------------------------------------------

def test_is_data_uri():
    assert is_data_uri("data:image/png;base64,AAAA")
    assert not is_data_uri("https://cdn.example.org/a.png")
    assert not is_data_uri(None)
    assert not is_data_uri(["data:image/png;base64,AAAA"])


def test_decode_data_uri(make_data_uri):
    raw, mime = decode_data_uri(make_data_uri(10, 8))
    assert mime == "image/png"
    assert open_image(raw).size == (10, 8)


@pytest.mark.parametrize("value", [
    "data:image/png,not-base64-flagged",
    "data:text/plain;base64,aGVsbG8=",
    "data:image/png;base64,###",
    "https://example.org/a.png",
])
def test_decode_rejects_bad_input(value):
    with pytest.raises(ImageProcessingError):
        decode_data_uri(value)


def test_estimated_size_uses_payload_length():
    assert estimated_size("data:image/png;base64," + "A" * 400) == 300


# ---------------------------------------------------------------------------
# Downscale to budget
# ---------------------------------------------------------------------------

def test_downscale_keeps_images_that_fit(make_image_bytes):
    raw = make_image_bytes(32, 32)
    assert downscale_to_budget(raw, max_bytes=len(raw)) is raw


def test_downscale_shrinks_until_it_fits(make_image_bytes):
    """A noisy photo-like JPEG is scaled down and recompressed under budget."""
    raw = make_image_bytes(400, 400, fmt="JPEG", noise=True)
    budget = 80_000
    assert len(raw) > budget

    result = downscale_to_budget(raw, max_bytes=budget)

    assert len(result) <= budget
    img = open_image(result)
    assert img.format == "JPEG"
    assert img.width <= 400 and img.height <= 400


def test_downscale_gives_up_after_max_iterations(make_image_bytes):
    raw = make_image_bytes(200, 200, fmt="JPEG", noise=True)
    with pytest.raises(ImageTooLargeError, match="Could not reduce image below"):
        downscale_to_budget(raw, max_bytes=100)


def test_downscale_respects_iteration_count(make_image_bytes):
    """With a single pass only re-encoding at full size is attempted."""
    raw = make_image_bytes(300, 300, fmt="JPEG", noise=True)
    with pytest.raises(ImageTooLargeError):
        downscale_to_budget(raw, max_bytes=len(raw) // 20, max_iterations=1)


def test_downscale_rejects_non_images():
    with pytest.raises(ImageProcessingError):
        downscale_to_budget(b"definitely not an image" * 10, max_bytes=10)


# ---------------------------------------------------------------------------
# Width limit
# ---------------------------------------------------------------------------

def test_limit_width_resizes_proportionally(make_image_bytes):
    out, ext = limit_width(make_image_bytes(300, 100), max_width=120, quality=80)
    assert ext == "png"
    assert open_image(out).size == (120, 40)


def test_limit_width_never_enlarges(make_image_bytes):
    out, ext = limit_width(make_image_bytes(80, 60, fmt="JPEG"), max_width=1200, quality=80)
    assert ext == "jpg"
    assert open_image(out).size == (80, 60)


def test_unwritable_formats_become_jpeg(make_image_bytes):
    out, ext = limit_width(make_image_bytes(20, 20, fmt="BMP"), max_width=1200, quality=80)
    assert ext == "jpg"
    assert open_image(out).format == "JPEG"


# ---------------------------------------------------------------------------
# Full pipeline
# ---------------------------------------------------------------------------

def test_prepare_data_uri(make_data_uri):
    out, ext = prepare_data_uri(
        make_data_uri(2000, 500), max_bytes=15 * 1024 * 1024,
        budget_bytes=10 * 1024 * 1024, max_width=1200, quality=80,
    )
    assert ext == "png"
    assert open_image(out).size == (1200, 300)


def test_prepare_data_uri_skips_oversized(make_data_uri):
    with pytest.raises(ImageTooLargeError, match="exceeds"):
        prepare_data_uri(make_data_uri(64, 64), max_bytes=10, budget_bytes=10, max_width=1200, quality=80)


# ---------------------------------------------------------------------------
# Animated GIFs
# ---------------------------------------------------------------------------

def test_limit_width_keeps_every_frame():
    out, ext = limit_width(animated_gif(300, 100), max_width=150, quality=80)
    img = open_image(out)
    assert ext == "gif"
    assert img.size == (150, 50)
    assert img.is_animated
    assert img.n_frames == 3


def test_narrow_animation_is_stored_unchanged():
    raw = animated_gif(300, 100)
    out, ext = limit_width(raw, max_width=1200, quality=80)
    assert ext == "gif"
    assert out == raw


def test_downscale_keeps_animation_frames():
    raw = animated_gif(200, 200, noise=True)
    budget = len(raw) // 2

    result = downscale_to_budget(raw, max_bytes=budget)

    assert len(result) <= budget
    img = open_image(result)
    assert img.format == "GIF"
    assert img.n_frames == 3
    assert img.width < 200

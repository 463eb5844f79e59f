# tests/services/conftest.py
"""Fixtures for service tests."""

from io import BytesIO

import pytest
from PIL import Image


def make_image_bytes(fmt: str = "PNG", color: str = "red", size: tuple[int, int] = (4, 4)) -> bytes:
    """Encode a tiny solid image."""
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes(fmt="JPEG")

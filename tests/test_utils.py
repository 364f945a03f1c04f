"""Tests for frame encoding helpers."""

import pytest
from PIL import Image

from focuscoach.utils import data_url_to_image, image_to_data_url, split_data_url


def test_image_encodes_to_jpeg_data_url():
    url = image_to_data_url(Image.new("RGB", (32, 24), color=(10, 200, 30)))
    assert url.startswith("data:image/jpeg;base64,")

    image = data_url_to_image(url)
    assert image.size == (32, 24)


def test_rgba_images_are_flattened():
    url = image_to_data_url(Image.new("RGBA", (8, 8)))
    mime, raw = split_data_url(url)
    assert mime == "image/jpeg"
    assert raw[:2] == b"\xff\xd8"


@pytest.mark.parametrize("value", ["", "hello", "data:image/png,notbase64", "data:image/png;base64,@@@"])
def test_split_data_url_rejects_garbage(value):
    with pytest.raises(ValueError):
        split_data_url(value)

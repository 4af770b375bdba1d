import dataclasses

import numpy as np

from attendance_kiosk.recognition.preprocessing import enhance_photo

from conftest import make_image


def test_disabled_returns_input(config):
    image = make_image(64, 64)

    assert enhance_photo(image, config) is image


def test_enhancement_keeps_shape(config):
    config = dataclasses.replace(config, enable_preprocessing=True)
    image = make_image(64, 64)

    enhanced = enhance_photo(image, config)

    assert enhanced.shape == image.shape
    assert enhanced.dtype == np.uint8
    assert not np.array_equal(enhanced, image)


def test_unsupported_image_falls_back(config):
    config = dataclasses.replace(config, enable_preprocessing=True)
    gray = np.zeros((64, 64), dtype=np.uint8)

    assert enhance_photo(gray, config) is gray

import numpy as np
import pytest


def make_step_image(height=32, width=32, low=10.0, high=90.0, channels=3, edge=None):
    """Two flat regions split vertically at column `edge`"""
    edge = width // 2 if edge is None else edge
    image = np.full((height, width, channels), low, dtype=np.float64)
    image[:, edge:, :] = high
    return image


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def step_image():
    return make_step_image()


@pytest.fixture
def gray_step_image():
    return make_step_image(channels=1)[:, :, 0]


@pytest.fixture
def noisy_image(rng):
    """Smooth gradient plus Gaussian noise, 24x24x3 on a 0-100 scale"""
    y, x = np.mgrid[0:24, 0:24]
    base = np.stack([2.0 * x, 2.0 * y, x + y], axis=2) + 20.0
    return base + rng.normal(0.0, 3.0, base.shape)


@pytest.fixture
def uint8_frame(rng):
    frame = np.zeros((20, 24, 3), dtype=np.uint8)
    frame[:, 12:] = (200, 120, 40)
    frame[:, :12] = (30, 60, 90)
    noise = rng.integers(-8, 9, frame.shape)
    return np.clip(frame.astype(np.int32) + noise, 0, 255).astype(np.uint8)

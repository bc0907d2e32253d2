"""Shared fixtures for layer and model tests."""

import numpy as np
import pytest


def estimate_gradient(loss_function, array: np.ndarray, step: float = 1e-5) -> np.ndarray:
    """
    Central finite-difference gradient of loss_function w.r.t. array.

    The array is perturbed in place one element at a time and restored.
    """
    gradient = np.zeros_like(array)
    for index in np.ndindex(array.shape):
        original = array[index]

        array[index] = original + step
        loss_plus = loss_function()

        array[index] = original - step
        loss_minus = loss_function()

        array[index] = original
        gradient[index] = (loss_plus - loss_minus) / (2 * step)

    return gradient


@pytest.fixture
def rng():
    """Seeded generator so every test is reproducible."""
    return np.random.default_rng(1234)


@pytest.fixture
def numerical_gradient():
    """Finite-difference gradient estimator."""
    return estimate_gradient

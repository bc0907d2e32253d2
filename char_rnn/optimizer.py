"""
Optimizer for Training Recurrent Layers

This module implements RMSProp, the adaptive per-parameter optimizer used by
every layer in this package, together with the learning rate schedule used
by the training driver.

Each layer owns one RMSProp instance. The optimizer keeps a running average
of squared gradients (the "cache") for every parameter; this cache lives for
the whole training run and is never cleared between windows.

Reference:
    - Tieleman & Hinton, "Lecture 6.5 - RMSProp", COURSERA: Neural Networks
      for Machine Learning (2012)

Classes:
    RMSProp: RMSProp optimizer with clipped updates

Functions:
    get_learning_rate_with_decay: Time-based learning rate decay per epoch
"""

from typing import Dict, Optional

import numpy as np

from char_rnn.activations import clip


class RMSProp:
    """
    RMSProp Optimizer with clipped gradients.

    Algorithm (for every parameter p with accumulated gradient g):
        cache = decay * cache + (1 - decay) * g^2
        p     = p - clip(g) * lr / sqrt(cache + eps)

    The cache uses the raw gradient, while the step itself uses the gradient
    clipped to [-clip_value, clip_value].

    Attributes:
        decay: Decay rate of the squared-gradient running average
        epsilon: Small constant for numerical stability
        clip_value: Bound applied to raw gradients before the update
        cache: Running average of squared gradients for each parameter
        step_count: Number of optimization steps taken
    """

    def __init__(
        self, decay: float = 0.95, epsilon: float = 1e-6, clip_value: float = 1.0
    ):
        """
        Initialize RMSProp optimizer.

        Args:
            decay: Running average decay. Default 0.95
            epsilon: Numerical stability constant. Default 1e-6
            clip_value: Gradient clipping bound. Default 1.0
        """
        self.decay = decay
        self.epsilon = epsilon
        self.clip_value = clip_value

        self.cache: Dict[str, np.ndarray] = {}
        self.step_count: int = 0

        # Reference to the owning layer's parameter dictionary
        self._params: Optional[Dict[str, np.ndarray]] = None

    def initialize(self, parameters: Dict[str, np.ndarray]) -> None:
        """
        Initialize optimizer state for the given parameters.

        The dictionary itself is kept (not a copy), so updates are applied
        to the layer's own arrays.

        Args:
            parameters: Dictionary of parameter name -> parameter array
        """
        self._params = parameters
        self.step_count = 0
        self.cache = {name: np.zeros_like(param) for name, param in parameters.items()}

    def step(self, gradients: Dict[str, np.ndarray], learning_rate: float) -> None:
        """
        Perform a single optimization step.

        Updates all parameters in-place based on their gradients.

        Args:
            gradients: Dictionary of parameter name -> gradient array
            learning_rate: Step size for this update

        Raises:
            RuntimeError: If initialize() has not been called
            FloatingPointError: If a gradient contains NaN or infinity
        """
        if self._params is None:
            raise RuntimeError("Optimizer not initialized. Call initialize() first.")

        for name, gradient in gradients.items():
            if not np.all(np.isfinite(gradient)):
                raise FloatingPointError(f"Non-finite gradient for parameter '{name}'")

        self.step_count += 1

        for name, gradient in gradients.items():
            if name not in self._params:
                continue

            cache = self.cache[name]
            cache *= self.decay
            cache += (1.0 - self.decay) * np.square(gradient)

            self._params[name] -= (
                clip(gradient, self.clip_value)
                * learning_rate
                / np.sqrt(cache + self.epsilon)
            )


def get_learning_rate_with_decay(
    epoch: int, base_learning_rate: float, num_epochs: int
) -> float:
    """
    Compute the learning rate for an epoch with time-based decay.

    The rate is divided by (1 + decay * epoch) at the start of every epoch,
    with decay = base_learning_rate / num_epochs:

        lr_0 = base
        lr_e = lr_{e-1} / (1 + decay * e)

    The schedule is a pure function of the epoch index, so the driver passes
    the result to each backward call instead of mutating shared state.

    Args:
        epoch: Zero-based epoch index
        base_learning_rate: Learning rate for the first epoch
        num_epochs: Total number of epochs in the run

    Returns:
        Learning rate for the given epoch
    """
    if num_epochs <= 0:
        raise ValueError(f"num_epochs must be positive, got {num_epochs}")

    decay = base_learning_rate / num_epochs
    learning_rate = base_learning_rate
    for step in range(1, epoch + 1):
        learning_rate = learning_rate / (1.0 + decay * step)

    return learning_rate

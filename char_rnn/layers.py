"""
Layer Contract for Windowed Sequence Models

This module defines the contract shared by every layer in the model and the
softmax output layer that turns hidden states into next-character
probabilities.

A layer processes one fixed-width window of timesteps at a time. The buffer
passed to forward() has shape (window_size, input_size). Row 0 of every
buffer is a carry-only slot: it is never read as new input. Instead, row 0
of the layer's own state holds whatever was carried over from the previous
window (or zeros when reset=True).

Lifecycle of a training window:
    outputs = layer.forward(buffer, reset)                  # fills state
    input_grads = layer.backward(output_grads, learning_rate)  # reads state

Classes:
    ConfigurationError: Raised for invalid layer dimensions or stacks
    RecurrentLayer: Abstract base class with the shared lifecycle
    SoftMaxLayer: Linear projection followed by softmax, per timestep
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

import numpy as np

from char_rnn.activations import clip, softmax
from char_rnn.optimizer import RMSProp


class ConfigurationError(ValueError):
    """Invalid layer dimensions or an inconsistent layer stack."""


class RecurrentLayer(ABC):
    """
    Base class for all layers.

    Subclasses describe their parameters via parameter_shapes() and
    implement the numeric body of the forward and backward passes. This base
    class owns everything else:
    - dimension validation
    - parameter, gradient and optimizer cache allocation
    - the forward/backward alternation check
    - applying the RMSProp step after each backward pass

    Attributes:
        input_size: Width of each external input vector
        output_size: Width of each output vector
        window_size: Number of timesteps per window (including the carry slot)
        rng: Random generator used for parameter initialization
        parameters: Dictionary of parameter name -> array
        gradients: Dictionary of parameter name -> accumulated gradient
        optimizer: RMSProp instance holding the squared-gradient cache
    """

    def __init__(
        self,
        input_size: int,
        output_size: int,
        window_size: int,
        rng: Optional[np.random.Generator] = None,
    ):
        """
        Initialize a layer with fixed dimensions.

        Args:
            input_size: Width of each external input vector
            output_size: Width of each output vector
            window_size: Timesteps per window, at least 2 (carry slot + one step)
            rng: Optional seeded generator. A fresh one is created if omitted.

        Raises:
            ConfigurationError: If any dimension is not a positive integer
        """
        for name, value, minimum in (
            ("input_size", input_size, 1),
            ("output_size", output_size, 1),
            ("window_size", window_size, 2),
        ):
            if not isinstance(value, (int, np.integer)) or value < minimum:
                raise ConfigurationError(
                    f"{name} must be an integer >= {minimum}, got {value!r}"
                )

        self.input_size = int(input_size)
        self.output_size = int(output_size)
        self.window_size = int(window_size)
        self.rng = rng if rng is not None else np.random.default_rng()

        self.parameters: Dict[str, np.ndarray] = {}
        self.gradients: Dict[str, np.ndarray] = {}
        self.optimizer = RMSProp()

        # Set by a training forward pass, cleared by the backward pass
        self._awaiting_backward = False

        self.reset_state()
        self.reset_parameters()
        self.reset_gradients()
        self.reset_caches()

    @abstractmethod
    def parameter_shapes(self) -> Dict[str, Tuple[int, ...]]:
        """Return parameter name -> shape for this layer."""

    @abstractmethod
    def reset_state(self) -> None:
        """Allocate zeroed per-timestep state for the whole window."""

    @abstractmethod
    def _forward(self, buffer: np.ndarray, reset: bool) -> np.ndarray:
        """Fill the layer state from the buffer and return the outputs."""

    @abstractmethod
    def _backward(self, output_gradients: np.ndarray) -> np.ndarray:
        """Accumulate gradients in reverse time, return input gradients."""

    def reset_parameters(self) -> None:
        """
        Initialize all parameters uniformly on [-0.5, 0.5).

        The same dictionary object is refilled so the optimizer keeps seeing
        the layer's current arrays.
        """
        for name, shape in self.parameter_shapes().items():
            self.parameters[name] = self.rng.uniform(-0.5, 0.5, size=shape)

    def reset_gradients(self) -> None:
        """Zero all gradient accumulators."""
        self.gradients = {
            name: np.zeros_like(param) for name, param in self.parameters.items()
        }

    def reset_caches(self) -> None:
        """Zero the optimizer cache. Only called at construction."""
        self.optimizer.initialize(self.parameters)

    def forward(
        self, buffer: np.ndarray, reset: bool = False, training: bool = True
    ) -> np.ndarray:
        """
        Forward pass over one window.

        Args:
            buffer: Input vectors of shape (window_size, input_size).
                    Row 0 is not read.
            reset: If True, the carried state at timestep 0 is zeroed.
                   Otherwise it is copied from the previous call's final timestep.
            training: If True, the state is kept for exactly one backward pass.
                      Use False for sampling and evaluation.

        Returns:
            outputs: Array of shape (window_size, output_size). Row 0 holds
                     the carried-over state.

        Raises:
            ValueError: If the buffer has the wrong shape
            RuntimeError: If a previous training window was never backpropagated
        """
        if self._awaiting_backward:
            raise RuntimeError(
                "forward() called while the previous training window is still "
                "waiting for backward()"
            )

        buffer = np.asarray(buffer, dtype=np.float64)
        expected_shape = (self.window_size, self.input_size)
        if buffer.shape != expected_shape:
            raise ValueError(
                f"Expected buffer of shape {expected_shape}, got {buffer.shape}"
            )

        outputs = self._forward(buffer, reset)
        self._awaiting_backward = training

        return outputs.copy()

    def compute_gradients(self, output_gradients: np.ndarray) -> np.ndarray:
        """
        Backpropagate through the stored window without updating parameters.

        Gradients are zeroed first, then accumulated over all timesteps. They
        stay available through get_gradients() until apply_gradients().

        Args:
            output_gradients: Gradient of the loss w.r.t. this layer's outputs,
                              shape (window_size, output_size). Row 0 is ignored.

        Returns:
            input_gradients: Gradient w.r.t. the external input,
                             shape (window_size, input_size). Row 0 is zero.

        Raises:
            RuntimeError: If there is no pending training forward pass
            ValueError: If output_gradients has the wrong shape
        """
        if not self._awaiting_backward:
            raise RuntimeError("backward() called without a preceding training forward()")

        output_gradients = np.asarray(output_gradients, dtype=np.float64)
        expected_shape = (self.window_size, self.output_size)
        if output_gradients.shape != expected_shape:
            raise ValueError(
                f"Expected gradients of shape {expected_shape}, "
                f"got {output_gradients.shape}"
            )

        self.reset_gradients()
        input_gradients = self._backward(output_gradients)
        self._awaiting_backward = False

        return input_gradients

    def apply_gradients(self, learning_rate: float) -> None:
        """Apply one RMSProp step with the accumulated gradients, then zero them."""
        self.optimizer.step(self.gradients, learning_rate)
        self.reset_gradients()

    def backward(self, output_gradients: np.ndarray, learning_rate: float) -> np.ndarray:
        """
        Backward pass: backpropagate, update parameters, clear gradients.

        Args:
            output_gradients: Gradient w.r.t. outputs, shape (window_size, output_size)
            learning_rate: Learning rate for this update

        Returns:
            input_gradients: Gradient w.r.t. inputs, shape (window_size, input_size)
        """
        input_gradients = self.compute_gradients(output_gradients)
        self.apply_gradients(learning_rate)
        return input_gradients

    def discard_window(self) -> None:
        """
        Drop a pending training window without backpropagating it.

        Used after a failed backward pass so the layer accepts a new forward.
        """
        self._awaiting_backward = False

    def count_parameters(self) -> int:
        """Count total number of scalar parameters (weights and biases)."""
        return sum(param.size for param in self.parameters.values())

    def get_parameters(self) -> Dict[str, np.ndarray]:
        """Return dictionary of learnable parameters."""
        return self.parameters

    def get_gradients(self) -> Dict[str, np.ndarray]:
        """Return dictionary of parameter gradients."""
        return self.gradients

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(input_size={self.input_size}, "
            f"output_size={self.output_size}, window_size={self.window_size})"
        )


class SoftMaxLayer(RecurrentLayer):
    """
    Softmax output layer.

    Projects the hidden state at every timestep to vocabulary logits and
    normalizes them into a probability distribution:

        probabilities[t] = softmax(weight @ hidden[t] + bias)

    There is no recurrence, so `reset` has no effect. The weight width equals
    the hidden width (no concatenated previous output).

    The backward pass expects the gradient of cross-entropy loss w.r.t. the
    logits, i.e. (predicted - target) per timestep, which is what
    cross_entropy_loss_backward() produces.
    """

    def parameter_shapes(self) -> Dict[str, Tuple[int, ...]]:
        return {
            "weight": (self.output_size, self.input_size),
            "bias": (self.output_size,),
        }

    def reset_state(self) -> None:
        self.inputs = np.zeros((self.window_size, self.input_size))
        self.probabilities = np.zeros((self.window_size, self.output_size))

    def _forward(self, buffer: np.ndarray, reset: bool) -> np.ndarray:
        self.inputs[:] = buffer

        # (T-1, hidden) @ (hidden, vocab) -> (T-1, vocab)
        logits = buffer[1:] @ self.parameters["weight"].T + self.parameters["bias"]
        self.probabilities[0] = 0.0
        self.probabilities[1:] = softmax(logits)

        return self.probabilities

    def _backward(self, output_gradients: np.ndarray) -> np.ndarray:
        d_logits = clip(output_gradients[1:])

        self.gradients["weight"] += d_logits.T @ self.inputs[1:]
        self.gradients["bias"] += np.sum(d_logits, axis=0)

        input_gradients = np.zeros((self.window_size, self.input_size))
        input_gradients[1:] = d_logits @ self.parameters["weight"]

        return input_gradients

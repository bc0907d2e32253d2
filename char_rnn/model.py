"""
Character-Level Recurrent Language Model

This module assembles recurrent layers and the softmax output layer into a
model that predicts the next character at every timestep of a window.

Architecture Overview:
    One-hot characters, shape (window_size, vocab_size)
           |
    [LSTM or simple RNN layer] x N
           |
    [SoftMax layer] -> next-character probabilities
           |
    Cross-entropy against the window shifted by one character

Training is truncated backpropagation through time: the gradient flows back
through the window only, while the hidden state is carried forward from one
window to the next.

Classes:
    ModelConfig: Configuration dataclass for model hyperparameters
    CharacterModel: Stack of layers with training and generation

Functions:
    check_layer_dimensions: Validate that adjacent layers fit together
    cross_entropy_loss: Loss of predicted probabilities against one-hot targets
    cross_entropy_loss_backward: Gradient of that loss w.r.t. the logits
    weighted_choice: Sample an index from a probability distribution
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from char_rnn.layers import ConfigurationError, RecurrentLayer, SoftMaxLayer
from char_rnn.lstm import LSTMLayer
from char_rnn.rnn import SimpleRecurrentLayer
from char_rnn.utils import advance_window, encode_window, one_hot

CELL_TYPES = {
    "lstm": LSTMLayer,
    "rnn": SimpleRecurrentLayer,
}


@dataclass
class ModelConfig:
    """
    Configuration for CharacterModel.

    Attributes:
        vocab_size: Number of distinct characters
        hidden_size: Width of every recurrent layer's output
        window_size: Timesteps per window, including the carry slot at row 0
        cell_type: "lstm" or "rnn"
        num_layers: Number of stacked recurrent layers
    """

    vocab_size: int = 64
    hidden_size: int = 160
    window_size: int = 24
    cell_type: str = "lstm"
    num_layers: int = 1

    def __post_init__(self):
        if self.cell_type not in CELL_TYPES:
            raise ConfigurationError(
                f"Unknown cell_type {self.cell_type!r}, "
                f"expected one of {sorted(CELL_TYPES)}"
            )
        if self.num_layers < 1:
            raise ConfigurationError(
                f"num_layers must be at least 1, got {self.num_layers}"
            )


def check_layer_dimensions(layers: Sequence[RecurrentLayer]) -> None:
    """
    Validate a layer stack before training.

    Every layer must use the same window size, and each layer's output width
    must equal the next layer's input width.

    Args:
        layers: Layers in forward order

    Raises:
        ConfigurationError: If the stack is empty or any dimension disagrees
    """
    if not layers:
        raise ConfigurationError("A model needs at least one layer")

    window_size = layers[0].window_size
    for index, layer in enumerate(layers):
        if layer.window_size != window_size:
            raise ConfigurationError(
                f"Layer {index} ({layer!r}) has window_size {layer.window_size}, "
                f"expected {window_size}"
            )

    for index, (previous, current) in enumerate(zip(layers, layers[1:]), start=1):
        if previous.output_size != current.input_size:
            raise ConfigurationError(
                f"Layer {index} expects input width {current.input_size} but "
                f"layer {index - 1} produces {previous.output_size}"
            )


class CharacterModel:
    """
    Character-level language model.

    The layers are kept in a flat list and composed in order: each layer's
    output buffer is the next layer's input buffer, and gradients flow back
    through the list in reverse.

    Example usage:
        config = ModelConfig(vocab_size=3, hidden_size=16, window_size=4)
        model = CharacterModel(config, rng=np.random.default_rng(0))

        loss = model.train_window(inputs, targets, reset=True, learning_rate=1e-2)
        sample_ids = model.generate(seed_ids, length=20)

    Attributes:
        config: Model configuration
        layers: Recurrent layers followed by the SoftMax output layer
        rng: Generator used for parameter initialization and sampling
    """

    def __init__(
        self, config: ModelConfig, rng: Optional[np.random.Generator] = None
    ):
        """
        Initialize the model with given configuration.

        Args:
            config: ModelConfig with model hyperparameters
            rng: Optional seeded generator shared by all layers and the sampler
        """
        self.config = config
        self.rng = rng if rng is not None else np.random.default_rng()

        cell_class = CELL_TYPES[config.cell_type]
        layers: List[RecurrentLayer] = []

        input_size = config.vocab_size
        for _ in range(config.num_layers):
            layers.append(
                cell_class(input_size, config.hidden_size, config.window_size, self.rng)
            )
            input_size = config.hidden_size

        layers.append(
            SoftMaxLayer(input_size, config.vocab_size, config.window_size, self.rng)
        )

        check_layer_dimensions(layers)
        self.layers = layers

    def forward(
        self, buffer: np.ndarray, reset: bool = False, training: bool = True
    ) -> np.ndarray:
        """
        Forward pass: one-hot window -> next-character probabilities.

        Args:
            buffer: One-hot inputs, shape (window_size, vocab_size)
            reset: Zero the carried state instead of continuing the last window
            training: Keep state for a following backward pass

        Returns:
            Probabilities of shape (window_size, vocab_size); row 0 is zero
        """
        outputs = buffer
        for layer in self.layers:
            outputs = layer.forward(outputs, reset, training)
        return outputs

    def backward(self, output_gradients: np.ndarray, learning_rate: float) -> np.ndarray:
        """
        Backward pass through all layers in reverse, updating each one.

        Args:
            output_gradients: Gradient w.r.t. the output layer's logits
            learning_rate: Learning rate for this update

        Returns:
            Gradient w.r.t. the model input, shape (window_size, vocab_size)

        Raises:
            FloatingPointError: If a layer receives a non-finite gradient.
                The whole window is discarded, so the model can still run
                forward afterwards.
        """
        gradients = output_gradients
        try:
            for layer in reversed(self.layers):
                gradients = layer.backward(gradients, learning_rate)
        finally:
            # Layers below a failed update never saw their backward pass
            for layer in self.layers:
                layer.discard_window()
        return gradients

    def train_window(
        self,
        inputs: np.ndarray,
        targets: np.ndarray,
        reset: bool,
        learning_rate: float,
    ) -> float:
        """
        Run one forward/backward cycle on a window.

        Args:
            inputs: One-hot inputs, shape (window_size, vocab_size)
            targets: One-hot next characters, same shape
            reset: Whether this window starts a fresh pass
            learning_rate: Learning rate for this update

        Returns:
            Cross-entropy loss of the window (before the update)
        """
        probabilities = self.forward(inputs, reset)
        loss = cross_entropy_loss(probabilities, targets)
        self.backward(cross_entropy_loss_backward(probabilities, targets), learning_rate)
        return loss

    def generate(
        self,
        seed_ids: Sequence[int],
        length: int,
        rng: Optional[np.random.Generator] = None,
    ) -> List[int]:
        """
        Generate characters by repeated sampling.

        The seed fills a window. At every step the model runs forward on the
        current window (resetting state only on the first step), a character
        is drawn from the distribution at the last timestep, and the window
        advances by that character.

        Args:
            seed_ids: Exactly window_size - 1 token IDs to prime the window
            length: Number of characters to generate
            rng: Optional generator for sampling. Defaults to the model's own.

        Returns:
            List of generated token IDs (the seed is not included)
        """
        rng = rng if rng is not None else self.rng
        buffer = encode_window(seed_ids, self.config.vocab_size, self.config.window_size)

        generated = []
        for step in range(length):
            probabilities = self.forward(buffer, reset=step == 0, training=False)
            next_id = weighted_choice(probabilities[-1], rng)
            advance_window(buffer, one_hot([next_id], self.config.vocab_size)[0])
            generated.append(next_id)

        return generated

    def get_parameters(self) -> Dict[str, np.ndarray]:
        """
        Get all model parameters.

        Returns:
            Dictionary mapping "layers.<index>.<name>" to parameter arrays
        """
        params = {}
        for index, layer in enumerate(self.layers):
            for name, param in layer.get_parameters().items():
                params[f"layers.{index}.{name}"] = param
        return params

    def count_parameters(self) -> int:
        """Count total number of parameters in the model."""
        return sum(layer.count_parameters() for layer in self.layers)


def cross_entropy_loss(probabilities: np.ndarray, targets: np.ndarray) -> float:
    """
    Compute cross-entropy loss for one window.

    Formula:
        loss = -sum_{t>=1} sum_i target[t, i] * log(p[t, i]) / window_size

    Row 0 (the carry slot) is skipped.

    Args:
        probabilities: Output of the SoftMax layer, shape (window_size, vocab_size)
        targets: One-hot next characters, same shape

    Returns:
        Scalar loss value
    """
    window_size = probabilities.shape[0]

    # Clip to avoid log(0)
    log_probs = np.log(np.clip(probabilities[1:], 1e-10, 1.0))
    loss = -np.sum(log_probs * targets[1:]) / window_size

    return float(loss)


def cross_entropy_loss_backward(
    probabilities: np.ndarray, targets: np.ndarray
) -> np.ndarray:
    """
    Compute gradient of cross-entropy loss with respect to the logits.

    For a softmax followed by cross-entropy the gradient has a simple form:
        d_loss/d_logits = softmax(logits) - one_hot(targets)

    Args:
        probabilities: Output of the SoftMax layer, shape (window_size, vocab_size)
        targets: One-hot next characters, same shape

    Returns:
        Gradient of the same shape; row 0 is zero
    """
    gradients = probabilities - targets
    gradients[0] = 0.0
    return gradients


def weighted_choice(probabilities: np.ndarray, rng: np.random.Generator) -> int:
    """
    Sample an index from a probability distribution.

    Draws u ~ Uniform[0, 1) and walks the distribution accumulating mass,
    returning the first index whose running total reaches u. If rounding
    leaves the total just short of u, the last index is returned.

    Args:
        probabilities: Non-negative vector summing to (about) 1
        rng: Random generator

    Returns:
        Sampled index
    """
    threshold = rng.random()
    cumulative = np.cumsum(probabilities)
    index = int(np.searchsorted(cumulative, threshold, side="left"))
    return min(index, len(probabilities) - 1)

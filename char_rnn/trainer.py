"""
Training Loop Helpers

One pass over a corpus is a sequence of contiguous windows. The state is
reset only on the first window, so the model sees the corpus as one long
stream while gradients are truncated at window boundaries.

Functions:
    train_step: Train on a single window
    train_epoch: Train on every window of a corpus once
"""

from typing import Optional, Tuple

import numpy as np

from char_rnn.model import CharacterModel
from char_rnn.utils import WindowedCorpus, update_smoothed_loss


def train_step(
    model: CharacterModel,
    inputs: np.ndarray,
    targets: np.ndarray,
    reset: bool,
    learning_rate: float,
) -> float:
    """
    Perform a single training step.

    Args:
        model: Character model
        inputs: One-hot input window, shape (window_size, vocab_size)
        targets: One-hot target window, same shape
        reset: Whether to zero the carried state first
        learning_rate: Current learning rate

    Returns:
        Loss value for this step
    """
    return model.train_window(inputs, targets, reset, learning_rate)


def train_epoch(
    model: CharacterModel,
    corpus: WindowedCorpus,
    learning_rate: float,
    smoothed_loss: Optional[float] = None,
    log_every: int = 0,
) -> Tuple[float, float]:
    """
    Train on every window of the corpus once.

    Args:
        model: Character model
        corpus: Windows over the tokenized training text
        learning_rate: Learning rate for every window of this epoch
        smoothed_loss: Running loss carried over from earlier epochs
        log_every: Print progress every N windows (0 disables)

    Returns:
        Tuple of (mean loss over the epoch, updated smoothed loss)
    """
    total_loss = 0.0
    num_windows = 0

    for inputs, targets, reset in corpus:
        loss = train_step(model, inputs, targets, reset, learning_rate)

        total_loss += loss
        num_windows += 1
        smoothed_loss = update_smoothed_loss(smoothed_loss, loss)

        if log_every and num_windows % log_every == 0:
            print(
                f"  Window {num_windows}/{len(corpus)} | "
                f"Loss: {loss:.4f} | "
                f"Smoothed: {smoothed_loss:.4f}"
            )

    return total_loss / max(num_windows, 1), smoothed_loss

"""
Utility Functions for Training and Sampling

This module provides the data plumbing around the layers:
- One-hot encoding and window buffers
- Sliding windows over a corpus for truncated BPTT
- Loss smoothing for progress reporting
- Corpus loading

Window layout:
    A buffer has window_size rows. Row 0 is the carry slot and stays zero;
    rows 1..window_size-1 hold window_size - 1 consecutive characters.
    The target buffer holds the same characters shifted by one.

Classes:
    WindowedCorpus: Iterates (inputs, targets, reset) windows over token ids

Functions:
    one_hot: One-hot encode token ids
    encode_window: Build a window buffer from token ids
    advance_window: Shift a window buffer by one character
    update_smoothed_loss: Exponential running average of the loss
    load_text: Read a text corpus from disk
    download_corpus: Download the Tiny Shakespeare corpus
"""

import os
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np


def one_hot(token_ids: Sequence[int], vocabulary_size: int) -> np.ndarray:
    """
    One-hot encode a sequence of token IDs.

    Args:
        token_ids: Sequence of integer token IDs in [0, vocabulary_size)
        vocabulary_size: Width of each encoded vector

    Returns:
        Array of shape (len(token_ids), vocabulary_size)
    """
    token_ids = np.asarray(token_ids, dtype=np.int64)
    encoded = np.zeros((len(token_ids), vocabulary_size))
    encoded[np.arange(len(token_ids)), token_ids] = 1.0
    return encoded


def encode_window(
    token_ids: Sequence[int], vocabulary_size: int, window_size: int
) -> np.ndarray:
    """
    Build a window buffer from window_size - 1 token IDs.

    Args:
        token_ids: Exactly window_size - 1 token IDs
        vocabulary_size: Width of each one-hot vector
        window_size: Number of rows in the buffer

    Returns:
        Buffer of shape (window_size, vocabulary_size) with row 0 zero

    Raises:
        ValueError: If the number of token IDs does not fill the window
    """
    if len(token_ids) != window_size - 1:
        raise ValueError(
            f"A window of size {window_size} needs {window_size - 1} token ids, "
            f"got {len(token_ids)}"
        )

    buffer = np.zeros((window_size, vocabulary_size))
    buffer[1:] = one_hot(token_ids, vocabulary_size)
    return buffer


def advance_window(buffer: np.ndarray, vector: np.ndarray) -> None:
    """
    Shift a window buffer left by one timestep, in place.

    Rows 2..T-1 move to rows 1..T-2 and the new vector becomes the last row.
    Row 0 (the carry slot) is untouched.

    Args:
        buffer: Window buffer of shape (window_size, width)
        vector: New last row, shape (width,)
    """
    buffer[1:-1] = buffer[2:]
    buffer[-1] = vector


class WindowedCorpus:
    """
    Sliding windows over a tokenized corpus.

    Consecutive windows are contiguous: each one starts window_size - 1
    characters after the previous one, so the state carried at the end of a
    window is exactly the state the next window should start from.

        start positions: 0, T-1, 2(T-1), ...  while start + T <= len(tokens)
        inputs:  tokens[start     : start + T - 1]   in rows 1..T-1
        targets: tokens[start + 1 : start + T]       in rows 1..T-1

    Usage:
        corpus = WindowedCorpus(token_ids, vocabulary_size=65, window_size=24)

        for inputs, targets, reset in corpus:
            # Training step
            pass

    Attributes:
        token_ids: Full tokenized corpus
        vocabulary_size: Width of each one-hot vector
        window_size: Rows per window buffer
    """

    def __init__(
        self, token_ids: Sequence[int], vocabulary_size: int, window_size: int
    ):
        """
        Initialize windows over a token sequence.

        Args:
            token_ids: Tokenized corpus
            vocabulary_size: Size of the vocabulary
            window_size: Number of rows per buffer (at least 2)

        Raises:
            ValueError: If window_size < 2 or the corpus cannot fill one window
        """
        if window_size < 2:
            raise ValueError(f"window_size must be at least 2, got {window_size}")

        self.token_ids = np.asarray(token_ids, dtype=np.int64)
        self.vocabulary_size = vocabulary_size
        self.window_size = window_size

        if len(self.token_ids) < window_size:
            raise ValueError(
                f"Corpus too short. Need at least {window_size} tokens, "
                f"got {len(self.token_ids)}"
            )

    @property
    def stride(self) -> int:
        """Characters between the starts of consecutive windows."""
        return self.window_size - 1

    def __len__(self) -> int:
        """Return number of windows in one pass over the corpus."""
        return (len(self.token_ids) - self.window_size) // self.stride + 1

    def __getitem__(self, idx: int) -> Tuple[np.ndarray, np.ndarray, bool]:
        """
        Get a single training window.

        Args:
            idx: Index of the window

        Returns:
            Tuple of (inputs, targets, reset). Both buffers have shape
            (window_size, vocabulary_size); reset is True only for idx 0.
        """
        if idx < 0 or idx >= len(self):
            raise IndexError(f"Index {idx} out of range [0, {len(self)})")

        start = idx * self.stride
        end = start + self.window_size - 1

        inputs = encode_window(
            self.token_ids[start:end], self.vocabulary_size, self.window_size
        )
        targets = encode_window(
            self.token_ids[start + 1 : end + 1],
            self.vocabulary_size,
            self.window_size,
        )

        return inputs, targets, idx == 0

    def __iter__(self) -> Iterator[Tuple[np.ndarray, np.ndarray, bool]]:
        """Iterate over windows in corpus order."""
        for idx in range(len(self)):
            yield self[idx]


def update_smoothed_loss(
    smoothed_loss: Optional[float], loss: float, momentum: float = 0.99
) -> float:
    """
    Update an exponential running average of the loss.

        smoothed = momentum * smoothed + (1 - momentum) * loss

    Args:
        smoothed_loss: Previous running average, or None to start from loss
        loss: Loss of the latest window
        momentum: Weight of the previous average

    Returns:
        Updated running average
    """
    if smoothed_loss is None:
        return float(loss)
    return momentum * smoothed_loss + (1.0 - momentum) * float(loss)


def load_text(path: str) -> str:
    """
    Read a UTF-8 text corpus.

    Args:
        path: Path to the text file

    Returns:
        File contents

    Raises:
        ValueError: If the file is empty
    """
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()

    if not text:
        raise ValueError(f"Corpus file {path} is empty")

    return text


def download_corpus(data_dir: str = "data") -> str:
    """
    Download the Tiny Shakespeare corpus.

    Downloads the text from a public URL and saves it to the specified
    directory. An existing copy is reused.

    Args:
        data_dir: Directory to save the data

    Returns:
        Path to the downloaded file
    """
    import urllib.request

    os.makedirs(data_dir, exist_ok=True)

    filepath = os.path.join(data_dir, "shakespeare.txt")

    if not os.path.exists(filepath):
        url = "https://raw.githubusercontent.com/karpathy/char-rnn/master/data/tinyshakespeare/input.txt"
        print(f"Downloading corpus from {url}...")
        urllib.request.urlretrieve(url, filepath)
        print(f"Downloaded to {filepath}")
    else:
        print(f"Corpus already exists at {filepath}")

    return filepath

"""
Character Tokenizer

This module maps text to integer ids one character at a time, which is all a
character-level model needs.

The vocabulary is built once from the training text: the distinct characters
are sorted and numbered 0..V-1. Sorting makes the mapping stable, so the same
text always produces the same ids, and characters are unique so there are
never ties.

Example:
    tokenizer = CharacterTokenizer()
    tokenizer.train("abcabc")
    tokenizer.encode("cab")   # [2, 0, 1]
    tokenizer.decode([0, 1])  # "ab"

Classes:
    CharacterTokenizer: Bidirectional character <-> id table
"""

import json
from typing import Dict, List, Sequence

import numpy as np

from char_rnn.utils import one_hot


class CharacterTokenizer:
    """
    Character-level tokenizer.

    Attributes:
        vocabulary: Dictionary mapping token ID -> character
        token_to_id: Dictionary mapping character -> token ID
    """

    def __init__(self):
        """Initialize an empty tokenizer. Call train() or load() before use."""
        self.vocabulary: Dict[int, str] = {}
        self.token_to_id: Dict[str, int] = {}

    @property
    def vocabulary_size(self) -> int:
        """Number of distinct characters in the vocabulary."""
        return len(self.vocabulary)

    def train(self, text: str) -> None:
        """
        Build the vocabulary from the distinct characters of a text.

        Args:
            text: Training text

        Raises:
            ValueError: If the text is empty
        """
        if not text:
            raise ValueError("Cannot build a vocabulary from empty text")

        characters = sorted(set(text))
        self.vocabulary = dict(enumerate(characters))
        self.token_to_id = {char: idx for idx, char in self.vocabulary.items()}

    def encode(self, text: str) -> List[int]:
        """
        Encode text into a list of token IDs.

        Args:
            text: Input text

        Returns:
            List of integer token IDs, one per character

        Raises:
            ValueError: If the text contains a character outside the vocabulary
        """
        token_ids = []
        for char in text:
            if char not in self.token_to_id:
                raise ValueError(f"Character {char!r} is not in the vocabulary")
            token_ids.append(self.token_to_id[char])
        return token_ids

    def decode(self, token_ids: Sequence[int]) -> str:
        """
        Decode a list of token IDs back into text.

        Args:
            token_ids: Sequence of integer token IDs

        Returns:
            Decoded text string
        """
        return "".join(self.vocabulary[int(token_id)] for token_id in token_ids)

    def one_hot(self, token_ids: Sequence[int]) -> np.ndarray:
        """
        One-hot encode a sequence of token IDs.

        Args:
            token_ids: Sequence of integer token IDs

        Returns:
            Array of shape (len(token_ids), vocabulary_size)
        """
        return one_hot(token_ids, self.vocabulary_size)

    def save(self, path: str) -> None:
        """
        Save tokenizer to a JSON file.

        Args:
            path: File path to save to
        """
        data = {"vocabulary": {str(k): v for k, v in self.vocabulary.items()}}

        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    @classmethod
    def load(cls, path: str) -> "CharacterTokenizer":
        """
        Load tokenizer from a JSON file.

        Args:
            path: File path to load from

        Returns:
            Loaded CharacterTokenizer instance
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        tokenizer = cls()
        tokenizer.vocabulary = {int(k): v for k, v in data["vocabulary"].items()}
        tokenizer.token_to_id = {v: k for k, v in tokenizer.vocabulary.items()}

        return tokenizer

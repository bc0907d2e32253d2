#!/usr/bin/env python3
"""
Training Script for the Character-Level Recurrent Model

This script trains an LSTM (or simple RNN) on a text corpus one window at a
time and prints generated samples after every epoch.

Usage:
    python train_char_model.py --corpus aesop.txt
    python train_char_model.py --cell rnn --hidden-size 64 --epochs 5

The script will:
1. Load the corpus (or download Tiny Shakespeare if none is given)
2. Build the character vocabulary
3. Create the model with the specified configuration
4. Train with RMSProp and a time-based learning rate decay
5. Log progress and samples to the console and to a log file

Training Configuration (defaults):
    - Model: 1 LSTM layer, 160 hidden units, window of 24 timesteps
    - Optimizer: RMSProp (decay 0.95), learning rate 1e-3 with time decay
    - Samples: 3 per epoch, 80 characters each
"""

import argparse
import os
import sys
from datetime import datetime

import numpy as np

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from char_rnn.model import CharacterModel, ModelConfig
from char_rnn.optimizer import get_learning_rate_with_decay
from char_rnn.tokenizer import CharacterTokenizer
from char_rnn.trainer import train_epoch
from char_rnn.utils import WindowedCorpus, download_corpus, load_text


class TeeLogger:
    """Print lines to the console and append them to a log file."""

    def __init__(self, path: str):
        self.path = path
        self._file = open(path, "w", encoding="utf-8")

    def log(self, message: str = "") -> None:
        print(message)
        self._file.write(message + "\n")
        self._file.flush()

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> "TeeLogger":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def timestamp() -> str:
    """Current time formatted like [H:MM:SS]."""
    now = datetime.now()
    return f"[{now.hour}:{now:%M:%S}]"


def generate_sample(
    model: CharacterModel,
    tokenizer: CharacterTokenizer,
    token_ids: np.ndarray,
    sample_length: int,
    rng: np.random.Generator,
) -> str:
    """
    Generate a text sample primed with the start of the corpus.

    Args:
        model: Trained model
        tokenizer: Tokenizer for decoding
        token_ids: Tokenized corpus
        sample_length: Number of characters to generate
        rng: Generator used for sampling

    Returns:
        Seed text followed by the generated characters
    """
    seed_ids = token_ids[: model.config.window_size - 1]
    generated = model.generate(seed_ids, sample_length, rng=rng)
    return tokenizer.decode(seed_ids) + tokenizer.decode(generated)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Train a character-level recurrent language model"
    )
    parser.add_argument("--corpus", help="Path to a UTF-8 text corpus")
    parser.add_argument(
        "--data-dir", default="data", help="Download directory when no corpus is given"
    )
    parser.add_argument("--cell", default="lstm", choices=["lstm", "rnn"])
    parser.add_argument("--hidden-size", type=int, default=160)
    parser.add_argument("--window-size", type=int, default=24)
    parser.add_argument("--num-layers", type=int, default=1)
    parser.add_argument("--epochs", type=int, default=25)
    parser.add_argument("--learning-rate", type=float, default=1e-3)
    parser.add_argument("--sample-length", type=int, default=80)
    parser.add_argument("--num-samples", type=int, default=3)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--log-file", default="log.txt")
    parser.add_argument(
        "--log-every", type=int, default=0, help="Print every N windows (0 = off)"
    )
    parser.add_argument("--vocab-out", help="Save the vocabulary as JSON")
    return parser.parse_args(argv)


def main(argv=None):
    """Main training function."""
    args = parse_args(argv)
    rng = np.random.default_rng(args.seed)

    # ==================== Data Loading ====================
    corpus_path = args.corpus or download_corpus(args.data_dir)
    text = load_text(corpus_path)

    tokenizer = CharacterTokenizer()
    tokenizer.train(text)
    if args.vocab_out:
        tokenizer.save(args.vocab_out)

    token_ids = np.array(tokenizer.encode(text), dtype=np.int64)
    corpus = WindowedCorpus(token_ids, tokenizer.vocabulary_size, args.window_size)

    # ==================== Model ====================
    config = ModelConfig(
        vocab_size=tokenizer.vocabulary_size,
        hidden_size=args.hidden_size,
        window_size=args.window_size,
        cell_type=args.cell,
        num_layers=args.num_layers,
    )
    model = CharacterModel(config, rng=rng)

    print(f"{timestamp()} Starting...")
    print(f"Loaded {len(text):,} characters, vocabulary of {tokenizer.vocabulary_size}")
    print(f"Model parameters: {model.count_parameters():,}")
    print(f"Windows per epoch: {len(corpus)}")
    print()

    # ==================== Training Loop ====================
    smoothed_loss = None

    with TeeLogger(args.log_file) as logger:
        for epoch in range(args.epochs):
            learning_rate = get_learning_rate_with_decay(
                epoch, args.learning_rate, args.epochs
            )

            _, smoothed_loss = train_epoch(
                model,
                corpus,
                learning_rate,
                smoothed_loss=smoothed_loss,
                log_every=args.log_every,
            )

            logger.log()
            logger.log(
                f"{timestamp()} epoch: {epoch}  loss: {smoothed_loss:.3f}  "
                f"lr: {learning_rate:.2e}"
            )

            for _ in range(args.num_samples):
                logger.log(
                    generate_sample(model, tokenizer, token_ids, args.sample_length, rng)
                )
                logger.log("-" * 40)

    print(f"{timestamp()} Finished!")


if __name__ == "__main__":
    main()

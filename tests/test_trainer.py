"""
Tests for the training loop.

Tests cover:
- A single training step
- Epoch statistics and progress output
- Learning a tiny periodic corpus end to end with both cell types
"""

import numpy as np
import pytest

from char_rnn.model import CharacterModel, ModelConfig
from char_rnn.tokenizer import CharacterTokenizer
from char_rnn.trainer import train_epoch, train_step
from char_rnn.utils import WindowedCorpus, encode_window


@pytest.fixture
def periodic_corpus():
    """'abcabc...' tokenized, with windows of four rows."""
    tokenizer = CharacterTokenizer()
    text = "abc" * 40
    tokenizer.train(text)
    token_ids = tokenizer.encode(text)
    return WindowedCorpus(token_ids, tokenizer.vocabulary_size, window_size=4)


def make_model(cell_type, rng):
    config = ModelConfig(vocab_size=3, hidden_size=10, window_size=4, cell_type=cell_type)
    return CharacterModel(config, rng=rng)


class TestTrainStep:
    """Test suite for a single training step."""

    def test_train_step_returns_loss(self, periodic_corpus, rng):
        """An untrained model reports a finite, positive loss."""
        model = make_model("lstm", rng)
        inputs, targets, reset = periodic_corpus[0]

        loss = train_step(model, inputs, targets, reset, learning_rate=0.01)

        assert np.isfinite(loss)
        assert loss > 0.0


class TestTrainEpoch:
    """Test suite for one pass over a corpus."""

    def test_returns_mean_and_smoothed_loss(self, periodic_corpus, rng):
        """Both losses are finite, and the smoothed one starts from the first."""
        model = make_model("rnn", rng)

        mean_loss, smoothed = train_epoch(model, periodic_corpus, learning_rate=0.01)

        assert np.isfinite(mean_loss)
        assert np.isfinite(smoothed)

    def test_smoothed_loss_carries_over(self, periodic_corpus, rng):
        """A smoothed loss passed in is updated, not replaced."""
        model = make_model("rnn", rng)

        _, smoothed = train_epoch(
            model, periodic_corpus, learning_rate=0.01, smoothed_loss=100.0
        )

        # 39 windows at 0.99 momentum cannot pull 100 below ~67
        assert smoothed > 60.0

    def test_progress_output(self, periodic_corpus, rng, capsys):
        """log_every prints one line per N windows."""
        model = make_model("rnn", rng)

        train_epoch(model, periodic_corpus, learning_rate=0.01, log_every=10)

        lines = [line for line in capsys.readouterr().out.splitlines() if line]
        assert len(lines) == len(periodic_corpus) // 10
        assert "Loss:" in lines[0] and "Smoothed:" in lines[0]

    def test_silent_by_default(self, periodic_corpus, rng, capsys):
        """Nothing is printed when log_every is 0."""
        train_epoch(make_model("rnn", rng), periodic_corpus, learning_rate=0.01)

        assert capsys.readouterr().out == ""


@pytest.mark.parametrize("cell_type", ["lstm", "rnn"])
class TestLearning:
    """The model should learn a trivially predictable sequence."""

    def test_loss_decreases(self, cell_type, periodic_corpus, rng):
        """The last epoch's mean loss is below the first epoch's."""
        model = make_model(cell_type, rng)

        losses = [
            train_epoch(model, periodic_corpus, learning_rate=0.01)[0]
            for _ in range(30)
        ]

        assert losses[-1] < losses[0]

    def test_predicts_next_character(self, cell_type, periodic_corpus, rng):
        """After training, the true next character is the most likely one."""
        model = make_model(cell_type, rng)
        for _ in range(30):
            train_epoch(model, periodic_corpus, learning_rate=0.01)

        buffer = encode_window([0, 1, 2], vocabulary_size=3, window_size=4)
        probabilities = model.forward(buffer, reset=True, training=False)

        expected_next = [1, 2, 0]
        for t, token_id in enumerate(expected_next, start=1):
            assert probabilities[t, token_id] > 1.0 / 3.0
            assert np.argmax(probabilities[t]) == token_id

    def test_generates_pattern(self, cell_type, periodic_corpus, rng):
        """Sampled text continues a -> b -> c -> a for most transitions."""
        model = make_model(cell_type, rng)
        for _ in range(30):
            train_epoch(model, periodic_corpus, learning_rate=0.01)

        seed_ids = [0, 1, 2]
        generated = model.generate(seed_ids, length=30, rng=np.random.default_rng(5))

        sequence = seed_ids[-1:] + generated
        followed = [
            (previous + 1) % 3 == current
            for previous, current in zip(sequence, sequence[1:])
        ]
        assert np.mean(followed) >= 0.8

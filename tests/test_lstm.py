"""
Tests for the LSTM layer.

Tests cover:
- Gate equations and the cell-state recurrence
- Carried cell and output state across windows
- Backpropagation through time: finite-difference gradient checks
- Gradient clipping of the incoming output gradients
"""

import numpy as np
import pytest

from char_rnn.activations import sigmoid
from char_rnn.lstm import GATES, LSTMLayer


@pytest.fixture
def layer(rng):
    return LSTMLayer(input_size=3, output_size=4, window_size=5, rng=rng)


class TestLSTMForward:
    """
    Test suite for the LSTM forward pass.

    cell[t]   = g[t] * i[t] + cell[t-1] * f[t]
    output[t] = tanh(cell[t]) * o[t]
    """

    def test_parameter_shapes(self, layer):
        """Each of the four gates has its own weight and bias."""
        params = layer.get_parameters()

        assert len(params) == 2 * len(GATES)
        for gate in GATES:
            assert params[f"{gate}.weight"].shape == (4, 3 + 4)
            assert params[f"{gate}.bias"].shape == (4,)
        assert layer.count_parameters() == 4 * (4 + 4 * (3 + 4))

    def test_reset_zeroes_cell_and_output(self, layer, rng):
        """With reset=True both carried vectors are zero."""
        layer.forward(rng.uniform(size=(5, 3)), reset=True, training=False)
        outputs = layer.forward(rng.uniform(size=(5, 3)), reset=True, training=False)

        np.testing.assert_array_equal(outputs[0], 0.0)
        np.testing.assert_array_equal(layer.cells[0], 0.0)

    def test_state_carried_across_windows(self, layer, rng):
        """With reset=False the final cell and output become timestep 0."""
        first = layer.forward(rng.uniform(size=(5, 3)), reset=True, training=False)
        last_cell = layer.cells[-1].copy()

        second = layer.forward(rng.uniform(size=(5, 3)), reset=False, training=False)

        np.testing.assert_array_equal(second[0], first[-1])
        np.testing.assert_array_equal(layer.cells[0], last_cell)

    def test_matches_manual_recurrence(self, layer, rng):
        """The forward pass matches a direct evaluation of the gate equations."""
        buffer = rng.uniform(size=(5, 3))
        params = layer.parameters

        outputs = layer.forward(buffer, reset=True)

        def gate(name, concat):
            return params[f"{name}.weight"] @ concat + params[f"{name}.bias"]

        cell = np.zeros(4)
        output = np.zeros(4)
        for t in range(1, 5):
            concat = np.concatenate([buffer[t], output])
            i = sigmoid(gate("input_gate", concat))
            f = sigmoid(gate("forget_gate", concat))
            o = sigmoid(gate("output_gate", concat))
            g = np.tanh(gate("candidate", concat))

            cell = g * i + cell * f
            output = np.tanh(cell) * o

            assert np.allclose(layer.cells[t], cell)
            assert np.allclose(outputs[t], output)

    def test_gate_activations_in_range(self, layer, rng):
        """Sigmoid gates lie in (0, 1), the candidate in (-1, 1)."""
        layer.forward(rng.uniform(-3.0, 3.0, size=(5, 3)), reset=True)

        for gate in ("input_gate", "forget_gate", "output_gate"):
            values = layer.gate_activations[gate][1:]
            assert np.all((values > 0.0) & (values < 1.0)), gate
        assert np.all(np.abs(layer.gate_activations["candidate"][1:]) < 1.0)


class TestLSTMBackward:
    """Test suite for backpropagation through time in the LSTM."""

    def test_gradient_check(self, layer, rng, numerical_gradient):
        """Analytic gradients for every gate match finite differences."""
        buffer = rng.uniform(-1.0, 1.0, size=(5, 3))
        upstream = rng.uniform(-0.5, 0.5, size=(5, 4))

        def loss_function():
            outputs = layer.forward(buffer, reset=True, training=False)
            return np.sum(outputs[1:] * upstream[1:])

        layer.forward(buffer, reset=True)
        input_gradients = layer.compute_gradients(upstream)
        analytic = {k: v.copy() for k, v in layer.get_gradients().items()}

        for name, param in layer.get_parameters().items():
            estimate = numerical_gradient(loss_function, param)
            assert np.allclose(analytic[name], estimate, atol=1e-6), name

        estimate = numerical_gradient(loss_function, buffer)
        assert np.allclose(input_gradients[1:], estimate[1:], atol=1e-6)
        np.testing.assert_array_equal(input_gradients[0], 0.0)

    def test_gradient_check_longer_window(self, rng, numerical_gradient):
        """Gradients stay exact when flowing through many timesteps."""
        layer = LSTMLayer(input_size=2, output_size=3, window_size=9, rng=rng)
        buffer = rng.uniform(-1.0, 1.0, size=(9, 2))
        upstream = np.zeros((9, 3))
        upstream[-1] = rng.uniform(-0.5, 0.5, size=3)

        def loss_function():
            outputs = layer.forward(buffer, reset=True, training=False)
            return np.sum(outputs * upstream)

        layer.forward(buffer, reset=True)
        input_gradients = layer.compute_gradients(upstream)

        estimate = numerical_gradient(loss_function, buffer)
        assert np.allclose(input_gradients[1:], estimate[1:], atol=1e-6)
        # The loss only sees the last output, yet the first input matters
        assert np.any(input_gradients[1] != 0.0)

    def test_large_output_gradients_are_clipped(self, layer, rng):
        """Incoming gradients beyond +/-1 act exactly like +/-1."""
        buffer = rng.uniform(size=(5, 3))
        large = rng.choice([-50.0, 50.0], size=(5, 4))

        layer.forward(buffer, reset=True)
        from_large = layer.compute_gradients(large)
        large_gradients = {k: v.copy() for k, v in layer.get_gradients().items()}

        layer.forward(buffer, reset=True)
        from_unit = layer.compute_gradients(np.sign(large))

        np.testing.assert_allclose(from_large, from_unit)
        for name, gradient in layer.get_gradients().items():
            np.testing.assert_allclose(large_gradients[name], gradient)

    def test_cache_changes_every_backward(self, layer, rng):
        """Each backward call decays and refreshes every gate's cache."""
        previous = None
        for window in range(3):
            layer.forward(rng.uniform(size=(5, 3)), reset=window == 0)
            layer.backward(rng.uniform(-0.5, 0.5, size=(5, 4)), 0.01)

            current = {k: v.copy() for k, v in layer.optimizer.cache.items()}
            if previous is not None:
                for name in current:
                    assert not np.allclose(current[name], previous[name]), name
            previous = current

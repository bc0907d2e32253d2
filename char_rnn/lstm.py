"""
Long Short-Term Memory Layer

A four-gate recurrent layer with a cell-state accumulator, trained with
backpropagation through time.

Every gate reads the same concatenated vector vcx[t] = input[t] ++ output[t-1]
with its own weight matrix and bias:

    i[t] = sigmoid(W_i @ vcx[t] + b_i)      input gate
    f[t] = sigmoid(W_f @ vcx[t] + b_f)      forget gate
    o[t] = sigmoid(W_o @ vcx[t] + b_o)      output gate
    g[t] = tanh(W_g @ vcx[t] + b_g)         candidate value

    cell[t]   = g[t] * i[t] + cell[t-1] * f[t]
    output[t] = tanh(cell[t]) * o[t]

The cell state gives gradients a path through time that is only scaled by
the forget gate, which is what lets the LSTM remember across many steps.

Reference:
    - "Long Short-Term Memory" (Hochreiter & Schmidhuber, 1997)
    - "Learning to Forget: Continual Prediction with LSTM" (Gers et al., 2000)

Classes:
    LSTMLayer: LSTM layer implementing the layer contract
"""

from typing import Dict, Tuple

import numpy as np

from char_rnn.activations import (
    clip,
    sigmoid,
    sigmoid_derivative,
    tanh,
    tanh_derivative,
)
from char_rnn.layers import RecurrentLayer

# Gate name -> (activation, derivative expressed via the activation's output)
GATES = {
    "input_gate": (sigmoid, sigmoid_derivative),
    "forget_gate": (sigmoid, sigmoid_derivative),
    "output_gate": (sigmoid, sigmoid_derivative),
    "candidate": (tanh, tanh_derivative),
}


class LSTMLayer(RecurrentLayer):
    """
    LSTM layer.

    Parameters (for each gate in GATES):
        <gate>.weight: shape (output_size, input_size + output_size)
        <gate>.bias: shape (output_size,)

    State (one row per timestep, fully overwritten by forward):
        gate_activations[<gate>]: shape (window_size, output_size)
        cells: shape (window_size, output_size)
        outputs: shape (window_size, output_size)
        concat_inputs: shape (window_size, input_size + output_size)

    With reset=False both the cell and the output at timestep 0 are copied
    from the final timestep of the previous window.
    """

    @property
    def concat_size(self) -> int:
        """Width of the concatenated [input, previous output] vector."""
        return self.input_size + self.output_size

    def parameter_shapes(self) -> Dict[str, Tuple[int, ...]]:
        shapes = {}
        for gate in GATES:
            shapes[f"{gate}.weight"] = (self.output_size, self.concat_size)
            shapes[f"{gate}.bias"] = (self.output_size,)
        return shapes

    def reset_state(self) -> None:
        self.gate_activations = {
            gate: np.zeros((self.window_size, self.output_size)) for gate in GATES
        }
        self.cells = np.zeros((self.window_size, self.output_size))
        self.outputs = np.zeros((self.window_size, self.output_size))
        self.concat_inputs = np.zeros((self.window_size, self.concat_size))

    def _forward(self, buffer: np.ndarray, reset: bool) -> np.ndarray:
        if reset:
            self.cells[0] = 0.0
            self.outputs[0] = 0.0
        else:
            self.cells[0] = self.cells[-1]
            self.outputs[0] = self.outputs[-1]

        gates = self.gate_activations

        for t in range(1, self.window_size):
            concat = self.concat_inputs[t]
            concat[: self.input_size] = buffer[t]
            concat[self.input_size :] = self.outputs[t - 1]

            for gate, (activation, _) in GATES.items():
                pre_activation = (
                    self.parameters[f"{gate}.weight"] @ concat
                    + self.parameters[f"{gate}.bias"]
                )
                gates[gate][t] = activation(pre_activation)

            self.cells[t] = (
                gates["candidate"][t] * gates["input_gate"][t]
                + self.cells[t - 1] * gates["forget_gate"][t]
            )
            self.outputs[t] = tanh(self.cells[t]) * gates["output_gate"][t]

        return self.outputs

    def _backward(self, output_gradients: np.ndarray) -> np.ndarray:
        """
        Backpropagate through time, last timestep first.

        Two running gradients cross timestep boundaries:
            d_cell:   flows to cell[t-1] through the forget gate (multiplied)
            d_output: flows to output[t-1] through all four gates' recurrent
                      weights (recomputed from scratch at every step)

        Per timestep:
            d_output += clip(dL/dy[t])
            d_o       = tanh(c[t]) * d_output
            d_cell   += o[t] * d_output * (1 - tanh(c[t])^2)
            d_f = c[t-1] * d_cell;  d_i = g[t] * d_cell;  d_g = i[t] * d_cell
            d_cell    = f[t] * d_cell
            d_pre[gate] = d_gate * activation'(gate output)
            d_vcx     = sum over gates of W_gate^T @ d_pre[gate]
            dL/dx[t]  = d_vcx[:input_size]
            d_output  = d_vcx[input_size:]
        """
        gates = self.gate_activations
        input_gradients = np.zeros((self.window_size, self.input_size))
        d_cell = np.zeros(self.output_size)
        d_output = np.zeros(self.output_size)

        for t in range(self.window_size - 1, 0, -1):
            d_output = d_output + clip(output_gradients[t])

            tanh_cell = tanh(self.cells[t])
            d_cell = d_cell + gates["output_gate"][t] * d_output * tanh_derivative(
                tanh_cell
            )

            d_gates = {
                "output_gate": tanh_cell * d_output,
                "forget_gate": self.cells[t - 1] * d_cell,
                "input_gate": gates["candidate"][t] * d_cell,
                "candidate": gates["input_gate"][t] * d_cell,
            }

            # Cell state's own recurrent path
            d_cell = gates["forget_gate"][t] * d_cell

            concat = self.concat_inputs[t]
            d_concat = np.zeros(self.concat_size)

            for gate, (_, derivative) in GATES.items():
                d_pre = d_gates[gate] * derivative(gates[gate][t])

                self.gradients[f"{gate}.weight"] += np.outer(d_pre, concat)
                self.gradients[f"{gate}.bias"] += d_pre

                d_concat += self.parameters[f"{gate}.weight"].T @ d_pre

            input_gradients[t] = d_concat[: self.input_size]
            d_output = d_concat[self.input_size :]

        return input_gradients

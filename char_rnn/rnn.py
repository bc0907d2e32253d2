"""
Simple Recurrent Layer (Elman RNN)

A single tanh recurrence over a fixed window, trained with backpropagation
through time (BPTT).

At every timestep the layer concatenates the external input with its own
previous output and applies one affine map followed by tanh:

    vcx[t]    = input[t] ++ output[t-1]
    output[t] = tanh(weight @ vcx[t] + bias)

Reference:
    - "Finding Structure in Time" (Elman, 1990)
    - "Backpropagation Through Time: What It Does and How to Do It"
      (Werbos, 1990)

Classes:
    SimpleRecurrentLayer: tanh RNN layer implementing the layer contract
"""

from typing import Dict, Tuple

import numpy as np

from char_rnn.activations import clip, tanh, tanh_derivative
from char_rnn.layers import RecurrentLayer


class SimpleRecurrentLayer(RecurrentLayer):
    """
    Simple recurrent layer with a tanh nonlinearity.

    Parameters:
        weight: shape (output_size, input_size + output_size)
                The first input_size columns read the external input, the
                remaining output_size columns read the previous output.
        bias: shape (output_size,)

    State (one row per timestep, fully overwritten by forward):
        outputs: shape (window_size, output_size)
        concat_inputs: shape (window_size, input_size + output_size)

    Example:
        layer = SimpleRecurrentLayer(input_size=3, output_size=8, window_size=4)
        outputs = layer.forward(buffer, reset=True)         # (4, 8)
        input_grads = layer.backward(output_grads, 1e-3)    # (4, 3)
    """

    @property
    def concat_size(self) -> int:
        """Width of the concatenated [input, previous output] vector."""
        return self.input_size + self.output_size

    def parameter_shapes(self) -> Dict[str, Tuple[int, ...]]:
        return {
            "weight": (self.output_size, self.concat_size),
            "bias": (self.output_size,),
        }

    def reset_state(self) -> None:
        self.outputs = np.zeros((self.window_size, self.output_size))
        self.concat_inputs = np.zeros((self.window_size, self.concat_size))

    def _forward(self, buffer: np.ndarray, reset: bool) -> np.ndarray:
        """
        Run the recurrence for t = 1 .. window_size - 1.

        Timestep 0 only carries state: zeros on reset, otherwise the final
        output of the previous window.
        """
        if reset:
            self.outputs[0] = 0.0
        else:
            self.outputs[0] = self.outputs[-1]

        weight = self.parameters["weight"]
        bias = self.parameters["bias"]

        for t in range(1, self.window_size):
            concat = self.concat_inputs[t]
            concat[: self.input_size] = buffer[t]
            concat[self.input_size :] = self.outputs[t - 1]

            self.outputs[t] = tanh(weight @ concat + bias)

        return self.outputs

    def _backward(self, output_gradients: np.ndarray) -> np.ndarray:
        """
        Backpropagate through time, last timestep first.

        The gradient reaching output[t] has two sources: the layer above
        (output_gradients[t], clipped) and the recurrent connection into
        timestep t+1 (carried_gradient).

        Mathematical Derivation:
            d_pre  = (clip(dL/dy[t]) + carried) * (1 - y[t]^2)
            dW    += outer(d_pre, vcx[t])
            db    += d_pre
            d_vcx  = W^T @ d_pre
            dL/dx[t]      = d_vcx[:input_size]
            carried(t-1)  = d_vcx[input_size:]
        """
        weight = self.parameters["weight"]
        input_gradients = np.zeros((self.window_size, self.input_size))
        carried_gradient = np.zeros(self.output_size)

        for t in range(self.window_size - 1, 0, -1):
            d_output = clip(output_gradients[t]) + carried_gradient
            d_pre = d_output * tanh_derivative(self.outputs[t])

            self.gradients["weight"] += np.outer(d_pre, self.concat_inputs[t])
            self.gradients["bias"] += d_pre

            # Split by column: external input vs. previous output
            d_concat = weight.T @ d_pre
            input_gradients[t] = d_concat[: self.input_size]
            carried_gradient = d_concat[self.input_size :]

        return input_gradients

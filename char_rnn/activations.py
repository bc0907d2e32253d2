"""
Activation Functions for Recurrent Layers

This module implements the squashing functions used by the recurrent layers
and the output layer, together with their derivatives.

The derivatives are expressed in terms of the function's own OUTPUT rather
than its input. During backpropagation through time the layers only keep
the activated values for each timestep, so this form lets the backward pass
work directly from the stored state.

Functions:
    sigmoid: Logistic function, squashes to (0, 1)
    tanh: Hyperbolic tangent, squashes to (-1, 1)
    softmax: Converts logits to a probability distribution
    clip: Symmetric hard clamp used to bound raw gradients

Gradient Functions:
    sigmoid_derivative: Derivative of sigmoid, given sigmoid(x)
    tanh_derivative: Derivative of tanh, given tanh(x)

Reference:
    - "Long Short-Term Memory" (Hochreiter & Schmidhuber, 1997)
    - "On the difficulty of training recurrent neural networks"
      (Pascanu et al., 2013) - gradient clipping
"""

import numpy as np


def sigmoid(x: np.ndarray) -> np.ndarray:
    """
    Compute the logistic sigmoid activation.

    Mathematical Formula:
        sigmoid(x) = 1 / (1 + exp(-x))

    Used for the input, forget and output gates of the LSTM, where the
    result acts as a soft on/off switch between 0 and 1.

    Args:
        x: Input array of any shape.

    Returns:
        Output array of same shape with values in (0, 1).

    Example:
        >>> sigmoid(np.array([0.0]))
        array([0.5])
    """
    return 1.0 / (1.0 + np.exp(-x))


def tanh(x: np.ndarray) -> np.ndarray:
    """
    Compute the hyperbolic tangent activation.

    Used for the simple recurrent layer's output, the LSTM candidate value
    and the LSTM cell squashing. Values lie in (-1, 1).

    Args:
        x: Input array of any shape.

    Returns:
        Output array of same shape.
    """
    return np.tanh(x)


def sigmoid_derivative(sigmoid_output: np.ndarray) -> np.ndarray:
    """
    Derivative of sigmoid, expressed through its output.

    If s = sigmoid(x) then:
        d(s)/dx = s * (1 - s)

    Args:
        sigmoid_output: The value sigmoid(x) from the forward pass.

    Returns:
        The local derivative at x, same shape as the input.
    """
    return sigmoid_output * (1.0 - sigmoid_output)


def tanh_derivative(tanh_output: np.ndarray) -> np.ndarray:
    """
    Derivative of tanh, expressed through its output.

    If y = tanh(x) then:
        d(y)/dx = 1 - y^2

    Args:
        tanh_output: The value tanh(x) from the forward pass.

    Returns:
        The local derivative at x, same shape as the input.
    """
    return 1.0 - np.square(tanh_output)


def clip(x: np.ndarray, limit: float = 1.0) -> np.ndarray:
    """
    Clamp values to the symmetric range [-limit, limit].

    This is the only defense against exploding gradients in the recurrent
    layers. It is applied element-wise to raw gradients: values inside the
    range pass through unchanged, values outside become exactly +/- limit.

    Args:
        x: Input array (or scalar).
        limit: Half-width of the allowed range.

    Returns:
        Clipped array of the same shape.

    Example:
        >>> clip(np.array([-3.0, 0.25, 7.0]))
        array([-1.  ,  0.25,  1.  ])
    """
    return np.clip(x, -limit, limit)


def softmax(logits: np.ndarray, axis: int = -1) -> np.ndarray:
    """
    Compute softmax activation function.

    Converts a vector of arbitrary real values (logits) into a probability
    distribution where all values are positive and sum to 1.

    Mathematical Formula:
        softmax(x)_i = exp(x_i) / sum_j(exp(x_j))

    Numerical Stability:
        We subtract max(x) from all values before exponentiation to prevent
        overflow. This doesn't change the result because:
        exp(x_i - max) / sum(exp(x_j - max)) = exp(x_i) / sum(exp(x_j))

    Args:
        logits: Input array of any shape. Softmax is applied along the
                specified axis.
        axis: The axis along which to compute softmax. Default is -1 (last axis).

    Returns:
        probabilities: Array of same shape as input, with softmax applied along
                      the specified axis. Values along that axis sum to 1.

    Example:
        >>> logits = np.array([1.0, 2.0, 3.0])
        >>> probs = softmax(logits)
        >>> print(probs)  # [0.09, 0.24, 0.67]
    """
    # Subtract maximum for numerical stability
    max_logit = np.max(logits, axis=axis, keepdims=True)
    exponentials = np.exp(logits - max_logit)

    sum_of_exponentials = np.sum(exponentials, axis=axis, keepdims=True)
    return exponentials / sum_of_exponentials

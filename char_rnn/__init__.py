"""
Character-Level Recurrent Language Model from Scratch

This package trains a character-level language model with backpropagation
through time (BPTT) over a sliding window of text, and samples new text from
it. Everything is implemented with NumPy.

Modules:
    activations: Squashing functions, their derivatives, clipping, softmax
    layers: Shared layer contract and the SoftMax output layer
    rnn: Simple (tanh) recurrent layer
    lstm: Long short-term memory layer
    optimizer: RMSProp optimizer and learning rate schedule
    tokenizer: Character-level tokenizer
    model: Layer stack, loss, and text generation
    trainer: Training loop over corpus windows
    utils: Window buffers, corpus loading, loss smoothing

Reference:
    "The Unreasonable Effectiveness of Recurrent Neural Networks"
    (Karpathy, 2015)
"""

__version__ = "1.0.0"
__author__ = "Character RNN Project"

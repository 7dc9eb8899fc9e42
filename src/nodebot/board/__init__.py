"""
The board abstraction - a live, protocol-bound representation of a microcontroller, exposing
pin and peripheral commands once its handshake completes.
"""

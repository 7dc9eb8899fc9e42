"""
Peripheral nodes - consumers of a connection that issue pin and device commands once its board is ready.
"""

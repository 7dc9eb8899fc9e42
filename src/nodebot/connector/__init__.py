"""
Connectors describe an endpoint a board can be reached at, and how to open a conduit to it.
"""

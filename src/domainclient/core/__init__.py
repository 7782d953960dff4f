"""
Core - Domain model, operations, collections and ports.

Nothing in here performs I/O; transports and configuration sources live
in the adapters package.
"""

"""Core subsystems: store, lifecycle, selector, strategies, control channel."""

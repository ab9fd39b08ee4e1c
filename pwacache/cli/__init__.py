"""pwacache CLI — Typer-based command-line interface.

Provides the ``pwacache`` command with subcommands for installing a
manifest into a file-backed store, activating it, inspecting versions and
namespaces, routing a single request, and clearing every cache.

All output uses Rich for formatted terminal display.
"""

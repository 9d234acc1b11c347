"""Errors that abort a single generation."""


class CompositionError(RuntimeError):
    """The final image cannot be produced (no target size, no base, no canvas)."""


class SnapshotError(RuntimeError):
    """No base snapshot could be built for a non-mosaic style."""

"""
Error taxonomy for card generation and document rendering.

Precondition errors are raised before any work starts. Transient asset
failures never surface as exceptions; the asset pipeline degrades them
to empty assets instead.
"""


class BingoError(Exception):
    """Base class for all engine errors."""


class PreconditionError(BingoError):
    """Request rejected before generation began."""


class InsufficientImagesError(PreconditionError):
    """The image pool cannot fill a single grid."""

    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(
            f"Not enough images: {available} available, {required} required per grid"
        )


class UnknownGameError(PreconditionError):
    def __init__(self, game_id: str):
        self.game_id = game_id
        super().__init__(f"Unknown game: {game_id}")


class UnknownGridError(PreconditionError):
    def __init__(self, grid_ids):
        self.grid_ids = list(grid_ids)
        super().__init__(f"Unknown grid(s): {', '.join(self.grid_ids)}")


class InvalidLayoutError(PreconditionError):
    """Layout parameters outside the supported range."""


class AssetDeadlineExceeded(BingoError):
    """Asset resolution overran the batch deadline."""

    def __init__(self, deadline: float, pending: int):
        self.deadline = deadline
        self.pending = pending
        super().__init__(
            f"Asset resolution exceeded {deadline:.1f}s with {pending} asset(s) pending"
        )


class DocumentEncodingError(BingoError):
    """The output document could not be assembled."""

"""Exception classes for golden image comparison."""


class GoldenStagError(Exception):
    """Base exception for goldenstag errors."""

    pass


class DimensionMismatchError(GoldenStagError, ValueError):
    """Raised when the golden and the candidate differ in width or height."""

    def __init__(
        self,
        golden_size: tuple[int, int],
        candidate_size: tuple[int, int],
        name: str | None = None,
    ):
        self.golden_size = golden_size
        self.candidate_size = candidate_size
        self.name = name
        prefix = f"Golden file {name}: " if name else ""
        super().__init__(
            f"{prefix}golden is {golden_size[0]}x{golden_size[1]} but the "
            f"screenshot is {candidate_size[0]}x{candidate_size[1]}"
        )


class CollaboratorUnavailableError(GoldenStagError):
    """Raised when the golden service fails or times out (fetch or submit)."""

    pass


class ArtifactWriteError(GoldenStagError):
    """Raised when a screenshot or comparison artifact can't be written."""

    pass

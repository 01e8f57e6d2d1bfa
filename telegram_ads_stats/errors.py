from __future__ import annotations


class ExtractionError(RuntimeError):
    """Summary source unreachable or its table is missing."""


class ProfileSessionError(RuntimeError):
    """Remote browser profile could not be started."""


class FetchFailure(RuntimeError):
    def __init__(self, reference: str, message: str) -> None:
        super().__init__(f"{message} ({reference})")
        self.reference = reference


class FetchTimeout(FetchFailure):
    pass


class FetchNotFound(FetchFailure):
    pass


class NavigationError(FetchFailure):
    pass


class SinkWriteError(RuntimeError):
    pass


class ReconciliationAmbiguity(RuntimeError):
    """A detail dataset satisfied more than one summary record."""

    def __init__(
        self,
        *,
        strategy: str,
        key: str,
        claimed_by: int,
        rejected: tuple[int, ...],
    ) -> None:
        super().__init__(
            f"{strategy} match on {key!r} claimed by record #{claimed_by}; "
            f"also wanted by {', '.join(f'#{pos}' for pos in rejected)}"
        )
        self.strategy = strategy
        self.key = key
        self.claimed_by = claimed_by
        self.rejected = rejected

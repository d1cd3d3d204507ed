"""Switch driver errors and multi-member error aggregation."""

from typing import List, Optional, Tuple


class SwitchError(Exception):
    """Switch I/O error exception."""
    pass


class AggregateError(SwitchError):
    """
    Combined error raised by operations that touch several members.

    Every per-member failure is kept in ``errors`` as a (context, exception)
    pair so callers can see the complete failure set.
    """

    def __init__(self, message: str, errors: List[Tuple[str, Exception]]):
        super().__init__(message)
        self.errors = errors


class ErrorCollector:
    """Accumulates errors from a multi-member operation."""

    def __init__(self):
        self._errors: List[Tuple[str, Exception]] = []

    def add(self, context: str, error: Optional[Exception]):
        """
        Record an error with identifying context.

        Args:
            context: Label for the failing member (e.g. "switch porch")
            error: The exception; None is ignored
        """
        if error is not None:
            self._errors.append((context, error))

    def has_errors(self) -> bool:
        return len(self._errors) > 0

    def count(self) -> int:
        return len(self._errors)

    @property
    def errors(self) -> List[Tuple[str, Exception]]:
        return list(self._errors)

    def result(self, context: str = "") -> Optional[AggregateError]:
        """
        Build the combined error.

        Args:
            context: Prefix describing the overall operation

        Returns:
            AggregateError describing every failure, or None if there were none
        """
        if not self._errors:
            return None

        parts = [f"{label}: {error}" if label else str(error) for label, error in self._errors]
        combined = "; ".join(parts)
        message = f"{context}: {combined}" if context else combined
        return AggregateError(message, self.errors)

    def raise_if_errors(self, context: str = ""):
        """Raise the combined error if anything was collected."""
        error = self.result(context)
        if error is not None:
            raise error

from typing import Any, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class OptimisticToggle(Generic[T]):
    """
    Tentative local state that is confirmed or reverted by a remote write.

    ``apply`` shows the new value immediately, ``commit`` keeps it and
    ``rollback`` restores whatever was confirmed before. ``run`` does all
    three around a write callable.
    """

    def __init__(self, value: T):
        self.value = value
        self.confirmed = value
        self.pending = False
        self.last_error: Optional[Exception] = None

    def apply(self, new_value: T):
        if self.pending:
            raise RuntimeError("A change is already pending")
        self.value = new_value
        self.pending = True

    def commit(self):
        self.confirmed = self.value
        self.pending = False

    def rollback(self):
        self.value = self.confirmed
        self.pending = False

    def run(self, new_value: T, write: Callable[[T], Any]) -> Any:
        """Apply ``new_value``, call ``write(new_value)``, revert if it raises."""
        self.apply(new_value)
        try:
            result = write(new_value)
        except Exception as e:
            self.last_error = e
            self.rollback()
            raise
        self.last_error = None
        self.commit()
        return result

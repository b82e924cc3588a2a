from decimal import Decimal
from typing import List, Optional

from ..errors import FieldError
from ..validators import breakdown_total, validate_breakdown


class BreakdownDraft:
    """
    Itemized breakdown being edited before a quote is provided.

    Lines have no ids; removing one shifts the ones after it down. The total
    is always recomputed from the lines and never kept separately.
    """

    def __init__(self, lines: Optional[List[dict]] = None):
        self.lines: List[dict] = [dict(line) for line in (lines or [])]

    def add(self, description: str, cost, category: str = "other") -> int:
        self.lines.append({"category": category, "description": description, "cost": cost})
        return len(self.lines) - 1

    def update(self, index: int, **fields):
        self.lines[index].update(fields)

    def remove(self, index: int) -> dict:
        return self.lines.pop(index)

    @property
    def total(self) -> Decimal:
        return breakdown_total(self.lines)

    def errors(self) -> List[FieldError]:
        return validate_breakdown(self.lines)

    def is_valid(self) -> bool:
        return not self.errors()

    def to_payload(self) -> List[dict]:
        return [dict(line) for line in self.lines]

    def __len__(self):
        return len(self.lines)

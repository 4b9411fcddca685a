from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from services.api.app.models.reference import DiscountLevel
from services.api.app.models.sales_order import DraftOrder
from services.api.app.services.errors import DraftValidationError

# First present field wins.
_VALUE_FIELDS = ("percentage", "percent", "rate", "value", "amount", "discount")
_LABEL_FIELDS = ("name", "label", "title")


@dataclass(frozen=True, slots=True)
class DiscountSelection:
    level: DiscountLevel | None
    discount_input: str
    discount_enabled: bool
    apply_to_existing: bool = True


def _plain(value: Decimal) -> str:
    text = format(value.normalize(), "f")
    return "0" if text in ("-0", "") else text


def _level_field(level: DiscountLevel, key: str) -> object:
    data = level.model_dump()
    return data.get(key)


def discount_input_for_level(level: DiscountLevel | None) -> str:
    """Normalize a discount level into the notation the pricing parser understands.

    Numeric values in (0, 100] read as percentages and become "{n}%"; everything else is
    passed through as written.
    """

    if level is None:
        return ""

    raw = None
    for key in _VALUE_FIELDS:
        raw = _level_field(level, key)
        if raw is not None:
            break

    if raw is None:
        return ""

    if isinstance(raw, (int, float, Decimal)) and not isinstance(raw, bool):
        try:
            value = Decimal(str(raw))
        except InvalidOperation:
            return str(raw)
        if 0 < value <= 100:
            return f"{_plain(value)}%"
        return _plain(value) if value.adjusted() < 16 else str(value)

    return str(raw).strip()


def discount_level_label(level: DiscountLevel | None) -> str:
    if level is None:
        return "No discount"

    for key in _LABEL_FIELDS:
        value = _level_field(level, key)
        if value is not None and str(value).strip():
            return str(value).strip()

    pct = level.percentage
    if isinstance(pct, Decimal) and pct:
        return f"{_plain(pct)}%"
    if isinstance(pct, str) and pct.strip():
        return f"{pct.strip()}%"

    return "No discount"


class DiscountPolicyResolver:
    """Maps discount level selections onto draft lines.

    The resolver holds the discount levels loaded for a draft session; the selected level
    itself lives on the draft.
    """

    def __init__(self, levels: Iterable[DiscountLevel]) -> None:
        self._levels: dict[str, DiscountLevel] = {str(level.id): level for level in levels}

    @property
    def levels(self) -> list[DiscountLevel]:
        return list(self._levels.values())

    def get(self, level_id: str | None) -> DiscountLevel | None:
        if not level_id:
            return None
        return self._levels.get(str(level_id))

    def select_level(self, level_id: str | None) -> DiscountSelection:
        if level_id is None or not str(level_id).strip():
            return DiscountSelection(level=None, discount_input="", discount_enabled=False)

        level = self.get(str(level_id).strip())
        if level is None:
            raise DraftValidationError({"discount_level_id": f"Unknown discount level: {level_id}"})

        return DiscountSelection(
            level=level,
            discount_input=discount_input_for_level(level),
            discount_enabled=True,
        )

    def default_for_new_line(self, draft: DraftOrder) -> DiscountSelection:
        level = self.get(draft.discount_level_id)
        if level is None:
            return DiscountSelection(
                level=None, discount_input="", discount_enabled=False, apply_to_existing=False
            )
        return DiscountSelection(
            level=level,
            discount_input=discount_input_for_level(level),
            discount_enabled=True,
            apply_to_existing=False,
        )

    def apply(self, draft: DraftOrder, selection: DiscountSelection) -> DraftOrder:
        """Record the selection on the draft and, in bulk, on every existing line."""

        items = draft.items
        if selection.apply_to_existing:
            items = tuple(
                line.model_copy(
                    update={
                        "discount_enabled": selection.discount_enabled,
                        "discount_input": selection.discount_input,
                    }
                )
                for line in draft.items
            )

        return draft.model_copy(
            update={
                "discount_level_id": str(selection.level.id) if selection.level else None,
                "items": items,
            }
        )

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BeforeValidator, Field, StringConstraints


def _to_lower_str(v):
    if v is None:
        return v
    return str(v).strip().lower()


def _strip_str(v):
    if v is None:
        return v
    return str(v).strip()


TransactionType = Annotated[Literal["income", "expense", "transfer"], BeforeValidator(_to_lower_str)]

# OA account ids are opaque; only trim and bound them.
AccountId = Annotated[
    str,
    BeforeValidator(_strip_str),
    StringConstraints(min_length=1, max_length=128),
]

Amount = Annotated[Decimal, Field(ge=0, max_digits=18, decimal_places=4)]

from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from enum import Enum
from typing import Annotated, Any, Iterable, Mapping, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

# One minor currency unit absorbs float/rounding drift in the sums.
BALANCE_TOLERANCE = Decimal("0.01")
CURRENCY_Q = Decimal("0.01")

TRANSACTION_TYPES = ("income", "expense", "transfer")


class ValidationErrorKind(str, Enum):
    UNBALANCED = "unbalanced"
    MISSING_DEBIT_SIDE = "missing_debit_side"
    MISSING_CREDIT_SIDE = "missing_credit_side"
    # Strict mode only.
    EMPTY_ENTRY = "empty_entry"
    TOO_FEW_LINES = "too_few_lines"
    INVALID_LINE = "invalid_line"


def _to_str_id(v: Any) -> Any:
    return None if v is None else str(v)


def _float_to_decimal(v: Any) -> Any:
    # Go through repr so 0.1 stays 0.1 and inf/nan become Decimal Infinity/NaN.
    if isinstance(v, float):
        return Decimal(str(v))
    return v


Money = Annotated[Decimal, Field(allow_inf_nan=True)]
LineAmount = Annotated[Optional[Money], BeforeValidator(_float_to_decimal)]


class JournalLine(BaseModel):
    """
    One leg of a journal entry. No sign or exclusivity rules here: request schemas
    enforce non-negative amounts, and strict validation rejects malformed legs.
    Non-finite amounts are carried through and make the entry unbalanced.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    account_id: Annotated[Optional[str], BeforeValidator(_to_str_id)] = Field(default=None, alias="accountId")
    debit: LineAmount = None
    credit: LineAmount = None
    description: Optional[str] = None


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_balanced: bool
    total_debits: Money
    total_credits: Money
    error: Optional[str] = None
    error_kind: Optional[ValidationErrorKind] = None

    @property
    def is_valid(self) -> bool:
        return self.is_balanced and self.error is None


LineLike = Union[JournalLine, Mapping[str, Any]]


def format_currency(amount) -> str:
    """Fixed-point, two decimals, half-up: 1234.5 -> "1234.50". Infinity/NaN pass through as text."""
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount or 0))
    if not value.is_finite():
        return str(value)
    return str(value.quantize(CURRENCY_Q, rounding=ROUND_HALF_UP))


@contextmanager
def _quiet_invalid_operation():
    # inf - inf gives NaN and NaN orderings compare False instead of raising.
    with localcontext() as ctx:
        ctx.traps[InvalidOperation] = False
        yield


def _as_line(line: LineLike) -> JournalLine:
    if isinstance(line, JournalLine):
        return line
    return JournalLine.model_validate(dict(line))


def _amount(v: Optional[Decimal]) -> Decimal:
    return v if v is not None else Decimal("0")


def _unbalanced(total_debits: Decimal, total_credits: Decimal) -> ValidationResult:
    return ValidationResult(
        is_balanced=False,
        total_debits=total_debits,
        total_credits=total_credits,
        error=f"Debits ({format_currency(total_debits)}) must equal credits ({format_currency(total_credits)})",
        error_kind=ValidationErrorKind.UNBALANCED,
    )


def _balance(total_debits: Decimal, total_credits: Decimal) -> ValidationResult:
    if not (total_debits.is_finite() and total_credits.is_finite()):
        return _unbalanced(total_debits, total_credits)
    if abs(total_debits - total_credits) > BALANCE_TOLERANCE:
        return _unbalanced(total_debits, total_credits)
    return ValidationResult(is_balanced=True, total_debits=total_debits, total_credits=total_credits)


def _strict_totals(lines: list[JournalLine]) -> tuple[Decimal, Decimal, list[str]]:
    total_debits = Decimal("0")
    total_credits = Decimal("0")
    errors: list[str] = []
    for idx, line in enumerate(lines):
        n = idx + 1
        if not (line.account_id or "").strip():
            errors.append(f"Line {n}: Account ID is required")
            continue
        debit = _amount(line.debit)
        credit = _amount(line.credit)
        if debit < 0 or credit < 0:
            errors.append(f"Line {n}: Amounts cannot be negative")
            continue
        if debit > 0 and credit > 0:
            errors.append(f"Line {n}: Cannot have both debit and credit amounts")
            continue
        if debit == 0 and credit == 0:
            errors.append(f"Line {n}: Must have either debit or credit amount")
            continue
        total_debits += debit
        total_credits += credit
    return total_debits, total_credits, errors


def validate_journal_entry(lines: Iterable[LineLike], *, strict: bool = False) -> ValidationResult:
    """
    Check that debits equal credits within BALANCE_TOLERANCE.

    The default mode sums whatever amounts are present (dual-value and negative
    lines included) and only judges the aggregate; an empty entry balances at 0.
    `strict=True` also requires at least two lines and one positive amount on
    exactly one side of each line, excluding rejected lines from the totals.
    Infinite or NaN totals are reported as unbalanced.
    """
    parsed = [_as_line(l) for l in (lines or [])]
    with _quiet_invalid_operation():
        return _check_entry(parsed, strict)


def _check_entry(parsed: list[JournalLine], strict: bool) -> ValidationResult:
    if strict:
        zero = Decimal("0")
        if not parsed:
            return ValidationResult(
                is_balanced=False,
                total_debits=zero,
                total_credits=zero,
                error="Journal entry must have at least one line",
                error_kind=ValidationErrorKind.EMPTY_ENTRY,
            )
        if len(parsed) < 2:
            return ValidationResult(
                is_balanced=False,
                total_debits=zero,
                total_credits=zero,
                error="Journal entry must have at least two lines (debit and credit)",
                error_kind=ValidationErrorKind.TOO_FEW_LINES,
            )
        total_debits, total_credits, errors = _strict_totals(parsed)
        if errors:
            return ValidationResult(
                is_balanced=False,
                total_debits=total_debits,
                total_credits=total_credits,
                error="; ".join(errors),
                error_kind=ValidationErrorKind.INVALID_LINE,
            )
        return _balance(total_debits, total_credits)

    total_debits = sum((_amount(l.debit) for l in parsed), Decimal("0"))
    total_credits = sum((_amount(l.credit) for l in parsed), Decimal("0"))
    return _balance(total_debits, total_credits)


# (credit-side message, debit-side message) per transaction type.
_SHAPE_MESSAGES = {
    "income": (
        "Income transaction must credit an income account",
        "Income transaction must debit a receiving account (cash, bank or receivable)",
    ),
    "expense": (
        "Expense transaction must credit a paying account (cash or bank)",
        "Expense transaction must debit an expense account",
    ),
    "transfer": (
        "Transfer transaction must credit the source account",
        "Transfer transaction must debit the destination account",
    ),
}


def validate_transaction_type(lines: Iterable[LineLike], expected_type: str, *, strict: bool = False) -> ValidationResult:
    """
    Balance check first (its failure wins), then the directional shape for the
    transaction type. A shape failure keeps `is_balanced` as computed and only
    sets `error`/`error_kind`.
    """
    kind = str(getattr(expected_type, "value", expected_type) or "").strip().lower()
    if kind not in _SHAPE_MESSAGES:
        raise ValueError(f"unknown transaction type: {expected_type!r}")

    parsed = [_as_line(l) for l in (lines or [])]
    base = validate_journal_entry(parsed, strict=strict)
    if not base.is_balanced:
        return base

    with _quiet_invalid_operation():
        has_credit = any(_amount(l.credit) > 0 for l in parsed)
        has_debit = any(_amount(l.debit) > 0 for l in parsed)
    credit_msg, debit_msg = _SHAPE_MESSAGES[kind]

    # Income is judged by its revenue (credit) leg first, the others by their debit leg.
    checks = [
        (has_credit, credit_msg, ValidationErrorKind.MISSING_CREDIT_SIDE),
        (has_debit, debit_msg, ValidationErrorKind.MISSING_DEBIT_SIDE),
    ]
    if kind != "income":
        checks.reverse()
    for present, msg, err_kind in checks:
        if not present:
            return base.model_copy(update={"error": msg, "error_kind": err_kind})
    return base

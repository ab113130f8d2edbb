from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., day already opened)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(LookupError):
    """404-level: the addressed row is gone."""


class UpstreamUnavailable(RuntimeError):
    """
    The backing store could not be reached or timed out.

    Callers must treat this as "unknown", never as "not found".
    """


@dataclass(frozen=True)
class PartialFailure:
    """
    A secondary effect failed after the primary money-moving effect succeeded.

    Collected as a warning; never raised.
    """
    step: str
    message: str

    def to_dict(self) -> dict:
        return {"step": self.step, "message": self.message}


PAYMENT_METHODS = ("cash", "till", "withdrawal", "send_money")

_PAYMENT_ALIASES = {
    "sendmoney": "send_money",
    "send": "send_money",
}


def normalize_payment_method(value: Any, *, default: str = "cash", strict: bool = True) -> str:
    """
    Normalize a payment method to one of PAYMENT_METHODS.

    "Send Money", "send-money" and "SEND_MONEY" all become "send_money".
    Unknown values raise ValidationError when strict, otherwise come back
    lowercased so legacy rows still render.
    """
    raw = str(value if value is not None else "").strip()
    if not raw:
        return default
    token = raw.lower().replace("-", "_").replace(" ", "_")
    while "__" in token:
        token = token.replace("__", "_")
    token = _PAYMENT_ALIASES.get(token.replace("_", ""), token)
    if token in PAYMENT_METHODS:
        return token
    if strict:
        raise ValidationError(
            f"paymentMethod must be one of: {', '.join(PAYMENT_METHODS)}"
        )
    return token


def as_number(value: Any, default: float | int | None = 0):
    """
    Coerce a JSON/cell value to a number.

    Integral values come back as int so they serialize as 100, not 100.0.
    Returns `default` for missing or non-numeric input.
    """
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return default
    try:
        n = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(n) or math.isinf(n):
        return default
    return int(n) if n.is_integer() else n


def require_non_negative(value: Any, field: str, *, default: Any = None):
    if value is None or value == "":
        value = default
    n = as_number(value, default=None)
    if n is None or n < 0:
        raise ValidationError(f"{field} must be a non-negative number")
    return n


def require_positive(value: Any, field: str):
    n = as_number(value, default=None)
    if n is None or n <= 0:
        raise ValidationError(f"{field} must be a positive number")
    return n


def parse_positive_int(value: Any, field: str, *, default: int) -> int:
    if value is None or str(value).strip() == "":
        return default
    s = str(value).strip()
    if not s.isdigit():
        raise ValidationError(f"{field} must be a positive integer")
    n = int(s)
    if n < 1:
        raise ValidationError(f"{field} must be a positive integer")
    return n


def safe_obj(value: Any) -> dict:
    if not value:
        return {}
    if isinstance(value, dict):
        return value
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def safe_list(value: Any) -> list:
    if not value:
        return []
    if isinstance(value, list):
        return value
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return []
    return parsed if isinstance(parsed, list) else []


def employee_fields(value: Any) -> tuple[str, str]:
    """(employeeId, employeeName) from the loosely-shaped employee object."""
    emp = safe_obj(value)
    employee_id = str(
        emp.get("id") or emp.get("employeeId") or emp.get("employeeid") or emp.get("username") or ""
    ).strip()
    employee_name = str(
        emp.get("name") or emp.get("employeeName") or emp.get("username") or ""
    ).strip()
    return employee_id, employee_name

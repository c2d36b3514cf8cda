from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation

from app.musaib.errors import ValidationError


def clean_str(value: object) -> str | None:
    """Strip form/JSON input; blank becomes None."""
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def parse_date(value: object, field_name: str) -> date | None:
    """Parse a YYYY-MM-DD string (blank -> None)."""
    if isinstance(value, date):
        return value
    s = clean_str(value)
    if s is None:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError as e:
        raise ValidationError(f"{field_name} must be a YYYY-MM-DD date.") from e


def parse_amount(value: object, field_name: str = "amount") -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    s = clean_str(value)
    if s is None:
        return None
    try:
        amount = Decimal(s.replace(",", "."))
    except InvalidOperation as e:
        raise ValidationError(f"{field_name} must be a number.") from e
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a number.")
    return amount.quantize(Decimal("0.01"))


def request_payload() -> dict:
    """Body of a JSON or form request as a plain dict (form values stay strings)."""
    import json

    from flask import request

    if request.is_json:
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object.")
        return body
    payload: dict = {k: v for k, v in request.form.items()}
    raw_payment = payload.get("payment_info")
    if isinstance(raw_payment, str):
        if raw_payment.strip():
            try:
                payload["payment_info"] = json.loads(raw_payment)
            except json.JSONDecodeError as e:
                raise ValidationError(f"payment_info JSON is invalid: {e}") from e
        else:
            payload.pop("payment_info")
    return payload

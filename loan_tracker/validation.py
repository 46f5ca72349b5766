"""Boundary validation for request payloads.

Every function here returns ``Ok(value)`` with a typed value object, or
``Err(field_errors)`` naming every invalid field at once. Nothing here
raises for bad input; services decide when a rejection becomes a
``ValidationError``.
"""
from typing import Any, Dict, List

import pydantic
from email_validator import EmailNotValidError, validate_email

from loan_tracker.schemas.loan import LoanCreate, LoanReturn
from loan_tracker.schemas.auth import LoginRequest, RegisterRequest
from loan_tracker.utils.result import Err, FieldErrors, Ok, Result
from loan_tracker.utils.timezone import ensure_aware


def _field_errors(exc: pydantic.ValidationError) -> FieldErrors:
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "body"
        errors.setdefault(field, []).append(error["msg"])
    return errors


def _merge(target: FieldErrors, field: str, message: str) -> None:
    target.setdefault(field, []).append(message)


def _parse(model, data: Any):
    """Run a pydantic model and return (instance, field_errors)."""
    if not isinstance(data, dict):
        return None, {"body": ["Expected a JSON object"]}
    try:
        return model.model_validate(data), {}
    except pydantic.ValidationError as exc:
        return None, _field_errors(exc)


def check_email(email: Any) -> List[str]:
    """Syntactic check only: no surrounding whitespace, local@domain shape."""
    if not isinstance(email, str) or not email:
        return ["Email is required"]
    if email != email.strip():
        return ["Email must not have leading or trailing whitespace"]
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as exc:
        return [f"Invalid email: {exc}"]
    return []


def validate_loan_create(data: Any, enforce_chronology: bool = True) -> Result[LoanCreate]:
    loan, errors = _parse(LoanCreate, data)
    if loan is not None and enforce_chronology:
        if ensure_aware(loan.return_by) < ensure_aware(loan.borrowed_at):
            _merge(errors, "return_by", "Return date must not be before the borrow date")
    if errors:
        return Err(errors)
    return Ok(loan)


def validate_loan_return(data: Any, borrowed_at=None, enforce_chronology: bool = True) -> Result[LoanReturn]:
    payload, errors = _parse(LoanReturn, data)
    if payload is not None and enforce_chronology and borrowed_at is not None:
        if ensure_aware(payload.returned_at) < ensure_aware(borrowed_at):
            _merge(errors, "returned_at", "Return date must not be before the borrow date")
    if errors:
        return Err(errors)
    return Ok(payload)


def validate_registration(data: Any) -> Result[RegisterRequest]:
    payload, errors = _parse(RegisterRequest, data)
    email_errors = check_email(data.get("email") if isinstance(data, dict) else None)
    if email_errors and "body" not in errors:
        errors["email"] = email_errors
    if errors:
        return Err(errors)
    return Ok(payload)


def validate_login(data: Any) -> Result[LoginRequest]:
    payload, errors = _parse(LoginRequest, data)
    email_errors = check_email(data.get("email") if isinstance(data, dict) else None)
    if email_errors and "body" not in errors:
        errors["email"] = email_errors
    if errors:
        return Err(errors)
    return Ok(payload)

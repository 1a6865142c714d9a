"""
Declarative validation for JSON request bodies.

A rule set is a dict of field name to a list of rule strings, e.g.

    EVENT_RULES = {
        "name": ["required", "string", "max:255"],
        "end_time": ["required", "datetime", "after:start_time"],
        "max_capacity": ["required", "integer", "min:1"],
    }

    cleaned = validate(data, EVENT_RULES)

``validate`` returns only the fields named in the rules, converted to their
Python types, and raises ValidationError listing every failing field.
Passing ``partial=True`` turns every "required" into "sometimes": fields are
checked only when present, which is what PUT endpoints need.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from backend.common.errors import ValidationError

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Largest value a PostgreSQL INTEGER column accepts.
PG_INT_MAX = 2147483647


def parse_dt(val: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 or datetime-local string to an aware datetime.

    Naive values are treated as UTC. Returns None if the value is not a
    parseable string.
    """
    if not isinstance(val, str) or not val.strip():
        return None
    val = val.strip()
    try:
        # Handles 'YYYY-MM-DDTHH:MM' and '...Z' or '...+00:00'
        if val.endswith("Z"):
            val = val[:-1] + "+00:00"
        parsed = datetime.fromisoformat(val)
    except (ValueError, TypeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_email(val: Any) -> str:
    return val.strip().lower() if isinstance(val, str) else ""


def _label(field: str) -> str:
    return field.replace("_", " ")


def _check(field: str, value: Any, rule: str, arg: Optional[str], data: Mapping[str, Any],
           cleaned: Dict[str, Any]) -> Optional[str]:
    """Apply one rule. Returns an error message, or None; may update cleaned[field]."""
    label = _label(field)

    if rule == "string":
        if not isinstance(value, str) or not value.strip():
            return f"The {label} field must be a non-empty string."
        cleaned[field] = value.strip()
    elif rule == "password":
        # Kept verbatim: whitespace is significant in a password.
        if not isinstance(value, str):
            return f"The {label} field must be a string."
    elif rule == "max":
        limit = int(arg)
        current = cleaned.get(field, value)
        if isinstance(current, str) and len(current) > limit:
            return f"The {label} field must not be greater than {limit} characters."
        if isinstance(current, int) and not isinstance(current, bool) and current > limit:
            return f"The {label} field must not be greater than {limit}."
    elif rule == "min":
        limit = int(arg)
        current = cleaned.get(field, value)
        if isinstance(current, str) and len(current) < limit:
            return f"The {label} field must be at least {limit} characters."
        if isinstance(current, int) and not isinstance(current, bool) and current < limit:
            return f"The {label} field must be at least {limit}."
    elif rule == "integer":
        if isinstance(value, bool):
            return f"The {label} field must be an integer."
        if isinstance(value, int):
            cleaned[field] = value
        elif isinstance(value, str) and re.fullmatch(r"-?\d+", value.strip()):
            cleaned[field] = int(value.strip())
        else:
            return f"The {label} field must be an integer."
    elif rule == "email":
        email = normalize_email(value)
        if not EMAIL_RE.match(email):
            return f"The {label} field must be a valid email address."
        cleaned[field] = email
    elif rule == "datetime":
        parsed = parse_dt(value)
        if parsed is None:
            return f"The {label} field must be a valid date (ISO-8601)."
        cleaned[field] = parsed
    elif rule == "digits":
        length = int(arg)
        text = str(value).strip() if isinstance(value, (str, int)) and not isinstance(value, bool) else ""
        if not re.fullmatch(rf"\d{{{length}}}", text):
            return f"The {label} field must be {length} digits."
        cleaned[field] = text
    elif rule == "confirmed":
        if data.get(f"{field}_confirmation") != value:
            return f"The {label} field confirmation does not match."
    elif rule == "after":
        other = cleaned.get(arg)
        current = cleaned.get(field)
        if isinstance(other, datetime) and isinstance(current, datetime) and current <= other:
            return f"The {label} field must be a date after {_label(arg)}."
    else:
        raise ValueError(f"Unknown validation rule: {rule}")
    return None


def validate(data: Optional[Mapping[str, Any]], rules: Mapping[str, List[str]],
             partial: bool = False) -> Dict[str, Any]:
    """
    Validate ``data`` against ``rules``.

    Returns:
        dict: cleaned values for the fields that were present.

    Raises:
        ValidationError: with a field -> [messages] mapping.
    """
    data = data or {}
    if not isinstance(data, Mapping):
        raise ValidationError({"body": ["The request body must be a JSON object."]})

    errors: Dict[str, List[str]] = {}
    cleaned: Dict[str, Any] = {}

    for field, field_rules in rules.items():
        present = field in data and data[field] is not None and data[field] != ""
        required = "required" in field_rules and not partial
        if not present:
            if required:
                errors[field] = [f"The {_label(field)} field is required."]
            elif partial and "required" in field_rules and field in data:
                # Sent explicitly as null/empty on an update.
                errors[field] = [f"The {_label(field)} field must not be empty."]
            continue

        cleaned[field] = data[field]
        for rule in field_rules:
            if rule in ("required", "sometimes"):
                continue
            name, _, arg = rule.partition(":")
            message = _check(field, data[field], name, arg or None, data, cleaned)
            if message:
                errors.setdefault(field, []).append(message)
                break

    if errors:
        raise ValidationError(errors)
    return cleaned

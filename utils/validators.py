"""
Request value parsing shared by the resources
"""
from datetime import date, datetime
from typing import Optional

from utils.errors import ValidationError


def parse_int(value, field: str, default: Optional[int] = None, minimum: Optional[int] = None) -> Optional[int]:
    """Parse an integer query/body value, raising ValidationError on junk"""
    if value is None or value == '':
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if minimum is not None and parsed < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return parsed


def parse_optional_bool(value, field: str) -> Optional[bool]:
    """Parse 'true'/'false' (or real booleans); None when the value is absent"""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered == 'true':
        return True
    if lowered == 'false':
        return False
    raise ValidationError(f"{field} must be 'true' or 'false'")


def parse_date(value, field: str) -> Optional[date]:
    if value is None or value == '':
        return None
    try:
        return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format")


def age_from_birthdate(birthdate: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    return today.year - birthdate.year - ((today.month, today.day) < (birthdate.month, birthdate.day))


def parse_json_object(payload) -> dict:
    """Body of a JSON request; anything but an object (or no body) is rejected"""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def parse_text(value, field: str, required: bool = False) -> Optional[str]:
    if value is None or value == '':
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value

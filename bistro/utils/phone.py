import re

_SEPARATORS = re.compile(r"[\s\-()]")

# +91XXXXXXXXXX, 91XXXXXXXXXX or XXXXXXXXXX; mobile numbers start with 6-9
_INDIAN_MOBILE = re.compile(r"^(?:\+91|91)?([6-9]\d{9})$")

_PIN_CODE = re.compile(r"^[1-9]\d{5}$")


def strip_separators(value: str) -> str:
    return _SEPARATORS.sub("", value)


def normalize_indian_mobile(value: str) -> str | None:
    """Return the number as ``+91XXXXXXXXXX``, or None if it is not a valid mobile."""
    match = _INDIAN_MOBILE.match(strip_separators(value.strip()))
    if match is None:
        return None
    return f"+91{match.group(1)}"


def is_valid_pin_code(value: str) -> bool:
    return _PIN_CODE.match(value.strip()) is not None

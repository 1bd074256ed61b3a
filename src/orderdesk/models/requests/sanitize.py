import re

_DISALLOWED = re.compile(r"[^\w\s]")


def sanitize_string(value: str) -> str:
    """Trim, then drop anything that is neither a word character nor whitespace."""
    return _DISALLOWED.sub("", value.strip())

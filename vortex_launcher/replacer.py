import logging
from typing import Iterable, List, Mapping

log = logging.getLogger(__name__)


def replace_text(value: str, replacements: Mapping[str, str]) -> str:
    """
    Replaces every occurrence of each key of `replacements` in `value`.

    Plain substring replacement, applied in mapping order; no regular
    expressions. Tokens absent from the mapping are left untouched.

    Args:
        value: The string to perform replacements on.
        replacements: Token to replacement text.

    Returns:
        The string with all replacements made, or `value` itself when it is
        not a string.
    """
    if not isinstance(value, str):
        log.warning(f"replace_text: expected a string, got {type(value).__name__}. Returning it unchanged.")
        return value

    for token, replacement in replacements.items():
        if token in value:
            value = value.replace(token, str(replacement))
    return value


def replace_all(values: Iterable[str], replacements: Mapping[str, str]) -> List[str]:
    return [replace_text(value, replacements) for value in values]

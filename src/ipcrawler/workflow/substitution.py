"""Placeholder substitution for workflow step arguments.

Placeholders use the ``{{name}}`` form. Substitution is a plain string
replacement, so running it twice over the same arguments is harmless.
"""

from __future__ import annotations

import re
from typing import List, Mapping, Optional, Sequence, Tuple

from ipcrawler.core.errors import SubstitutionError

PLACEHOLDER_RE = re.compile(r"\{\{.*?\}\}")


def substitute(value: str, variables: Mapping[str, str]) -> str:
    """Replace every ``{{key}}`` in value with its entry from variables.

    Placeholders without a matching variable are left untouched.
    """
    if "{{" not in value:
        return value
    for key, replacement in variables.items():
        value = value.replace("{{" + key + "}}", replacement)
    return value


def substitute_args(args: Sequence[str], variables: Mapping[str, str]) -> List[str]:
    return [substitute(arg, variables) for arg in args]


def find_unresolved(args: Sequence[str]) -> Optional[Tuple[int, str]]:
    """Locate the first placeholder that survived substitution.

    Returns:
        ``(position, placeholder)`` with a 1-based argument position, or
        None when every argument is fully resolved.
    """
    for i, arg in enumerate(args):
        match = PLACEHOLDER_RE.search(arg)
        if match:
            return i + 1, match.group(0)
    return None


def validate_args_substitution(args: Sequence[str]) -> None:
    """Raise SubstitutionError if any argument still holds a placeholder."""
    unresolved = find_unresolved(args)
    if unresolved is not None:
        position, placeholder = unresolved
        raise SubstitutionError(
            f"unsubstituted placeholder found in argument {position}: {placeholder}",
            placeholder=placeholder,
            position=position,
        )

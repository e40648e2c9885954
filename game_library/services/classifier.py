"""Classify repository files as installers, patches or other files."""

import re

from ..models import FileCategory

# Evaluated in order, first match wins.
_RULES: list[tuple[re.Pattern[str], FileCategory]] = [
    (re.compile(r"(setup|install|launcher).*\.(exe|msi|pkg|dmg)$", re.IGNORECASE), FileCategory.INSTALLER),
    (re.compile(r"(patch|update).*\.(exe|msi|pkg|dmg|zip)$", re.IGNORECASE), FileCategory.PATCH),
    (re.compile(r"\.exe$", re.IGNORECASE), FileCategory.INSTALLER),
]


def classify(file_name: str) -> FileCategory:
    """Return the category of a file from its name alone.

    Never raises: names that match no rule are ``FileCategory.OTHER``.
    """
    for pattern, category in _RULES:
        if pattern.search(file_name):
            return category
    return FileCategory.OTHER

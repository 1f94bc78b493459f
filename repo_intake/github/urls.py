"""Parsing of repository references given as URLs or ``owner/name``."""

import re
from typing import Optional, Tuple

_URL_PATTERN = re.compile(r"github\.com/([^/]+)/([^/]+?)(?:\.git)?(?:/.*)?$")
_SHORT_PATTERN = re.compile(r"^([^/\s]+)/([^/\s]+)$")


def parse_repo_reference(reference: str) -> Optional[Tuple[str, str]]:
    """Extract ``(owner, name)`` from a GitHub URL or an ``owner/name`` string.

    Args:
        reference: e.g. ``https://github.com/psf/requests.git`` or ``psf/requests``

    Returns:
        Owner and repository name, or None if the reference is not recognized
    """
    reference = reference.strip()
    for pattern in (_URL_PATTERN, _SHORT_PATTERN):
        match = pattern.search(reference)
        if match:
            owner, name = match.group(1), match.group(2)
            if name.endswith(".git"):
                name = name[:-4]
            if owner and name:
                return owner, name
    return None


def is_valid_repo_reference(reference: str) -> bool:
    return parse_repo_reference(reference) is not None


def repo_id(owner: str, name: str) -> str:
    """Namespace identifier used for the vector index."""
    return f"{owner}/{name}".lower()

"""Resolution of loosely typed provider identifiers."""

from __future__ import annotations

import re

from reviewhub.core.errors import UnsupportedPlatformError
from reviewhub.models.domain import PlatformType

_SEPARATORS = re.compile(r"[\s-]+")

PLATFORM_ALIASES: dict[str, PlatformType] = {
    "GITHUB": PlatformType.GITHUB,
    "GITLAB": PlatformType.GITLAB,
    "BITBUCKET": PlatformType.BITBUCKET,
    "AZURE_REPOS": PlatformType.AZURE_REPOS,
    "AZUREDEVOPS": PlatformType.AZURE_REPOS,
    "AZURE_DEVOPS": PlatformType.AZURE_REPOS,
    "AZURE_REPOSITORIES": PlatformType.AZURE_REPOS,
}


def resolve_platform(value: PlatformType | str) -> PlatformType:
    """Map a provider identifier to its canonical platform.

    Exact enum values win; anything else is trimmed, upper-cased, has runs of
    whitespace and hyphens collapsed to underscores, and is looked up in
    ``PLATFORM_ALIASES``. Unknown identifiers raise ``UnsupportedPlatformError``.
    """

    if isinstance(value, PlatformType):
        return value
    if not isinstance(value, str):
        raise UnsupportedPlatformError(value)
    try:
        return PlatformType(value)
    except ValueError:
        pass
    normalized = _SEPARATORS.sub("_", value.strip().upper())
    platform = PLATFORM_ALIASES.get(normalized)
    if platform is None:
        raise UnsupportedPlatformError(value)
    return platform

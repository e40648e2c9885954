"""Infer installable versions and patch chains from file names.

Installer names are matched against an ordered list of version patterns.
Installers that share a display name form one version. Patches declaring a
``from ... to ...`` build range are attached to the version they upgrade;
patches whose range cannot be read are attached to every version so that no
potentially required patch is dropped.
"""

import re
from collections.abc import Callable, Iterable

import structlog

from ..models import FileCategory, FileRecord, VersionRecord

log = structlog.stdlib.get_logger()

DEFAULT_VERSION_NAME = "Default Version"
DEFAULT_BUILD_NUMBER = 1

_BUILD_PATTERN = re.compile(r"build_(\d+[a-z]?)")
_PREFIXED_DOTTED_PATTERN = re.compile(r"v(\d+\.\d+(?:\.\d+)?)")
_DOTTED_PATTERN = re.compile(r"(\d+\.\d+(?:\.\d+)?)")
_PATCH_RANGE_PATTERN = re.compile(
    r"(?:patch|update).*?(?:build|v)_?(\d+[a-z]?)(?:_|\s|-).*?(?:to|-).*?(?:build|v)_?(\d+[a-z]?)"
)
_LEADING_DIGITS = re.compile(r"\d+")


def parse_numeric(identifier: str) -> int:
    """Numeric body of a build identifier such as ``2241b``; 0 if absent."""
    match = _LEADING_DIGITS.match(identifier)
    return int(match.group()) if match else 0


def dotted_build_number(version: str) -> int:
    """Map ``a.b[.c]`` onto a comparable integer.

    Each component is clamped to 0..99 so that minor components can never
    overflow into the next major slot.
    """
    parts = []
    for part in version.split(".")[:3]:
        try:
            parts.append(min(max(int(part), 0), 99))
        except ValueError:
            parts.append(0)
    while len(parts) < 3:
        parts.append(0)
    major, minor, micro = parts
    return major * 1_000_000 + minor * 10_000 + micro * 100


def _match_build(name: str) -> tuple[str, int] | None:
    match = _BUILD_PATTERN.search(name)
    if not match:
        return None
    number = parse_numeric(match.group(1))
    return f"Build {number}", number


def _match_prefixed_dotted(name: str) -> tuple[str, int] | None:
    match = _PREFIXED_DOTTED_PATTERN.search(name)
    if not match:
        return None
    return f"Version {match.group(1)}", dotted_build_number(match.group(1))


def _match_dotted(name: str) -> tuple[str, int] | None:
    match = _DOTTED_PATTERN.search(name)
    if not match:
        return None
    return f"Version {match.group(1)}", dotted_build_number(match.group(1))


VERSION_MATCHERS: list[Callable[[str], tuple[str, int] | None]] = [
    _match_build,
    _match_prefixed_dotted,
    _match_dotted,
]


def match_version(file_name: str) -> tuple[str, int] | None:
    """Return ``(display_name, build_number)`` from the first matching pattern."""
    lowered = file_name.lower()
    for matcher in VERSION_MATCHERS:
        result = matcher(lowered)
        if result is not None:
            return result
    return None


def patch_range(file_name: str) -> tuple[int, int] | None:
    """Return the ``(from, to)`` build numbers a patch upgrades between."""
    match = _PATCH_RANGE_PATTERN.search(file_name.lower())
    if not match:
        return None
    return parse_numeric(match.group(1)), parse_numeric(match.group(2))


def resolve_versions(files: Iterable[FileRecord]) -> list[VersionRecord]:
    """Group a game directory's installers into versions and attach patches.

    Args:
        files: All files found in one game directory

    Returns:
        Versions sorted by build number, newest first. Empty when the
        directory holds no installers.
    """
    installers = [f for f in files if f.category == FileCategory.INSTALLER]
    patches = [f for f in files if f.category == FileCategory.PATCH]

    groups: dict[str, tuple[int, list[FileRecord]]] = {}
    for installer in installers:
        matched = match_version(installer.name)
        display_name, build_number = matched or (DEFAULT_VERSION_NAME, DEFAULT_BUILD_NUMBER)
        if display_name not in groups:
            groups[display_name] = (build_number, [])
        groups[display_name][1].append(installer)

    versions = [
        VersionRecord(display_name=name, build_number=build, files=members)
        for name, (build, members) in groups.items()
    ]

    if versions:
        for patch in patches:
            build_range = patch_range(patch.name)
            if build_range is None:
                log.debug("Patch target unknown, attaching to all versions", patch=patch.name)
                for version in versions:
                    version.required_patches.append(patch)
                continue

            source_build, _ = build_range
            for version in versions:
                if version.build_number == source_build:
                    version.required_patches.append(patch)

    if not versions and installers:
        versions.append(
            VersionRecord(
                display_name=DEFAULT_VERSION_NAME,
                build_number=DEFAULT_BUILD_NUMBER,
                files=list(installers),
            )
        )

    # sort() is stable, equal build numbers keep discovery order
    versions.sort(key=lambda v: v.build_number, reverse=True)
    return versions


def required_files(version: VersionRecord) -> list[FileRecord]:
    """Installers followed by the patches needed for this version."""
    return list(version.files) + list(version.required_patches)


def needs_patches(version: VersionRecord) -> bool:
    return bool(version.required_patches)


def ordered_patches(version: VersionRecord) -> list[FileRecord]:
    """Patches in application order: lowest source build first.

    Patches without a readable range go last in discovery order.
    """
    def sort_key(patch: FileRecord) -> tuple[int, int]:
        build_range = patch_range(patch.name)
        if build_range is None:
            return (1, 0)
        return (0, build_range[0])

    return sorted(version.required_patches, key=sort_key)

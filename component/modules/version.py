# component/modules/version.py
"""
version.py - versões semânticas (SemVer) dos componentes.

Aceita a forma "solta" usada pelo catálogo: prefixo "v" opcional e minor/patch
opcionais ("1", "v1.2", "1.2.3-rc.1+build.5"). A comparação segue as regras do
SemVer 2.0: metadados de build são ignorados e uma versão com pre-release é
menor que a mesma versão sem pre-release.
"""

from __future__ import annotations
import re
from functools import total_ordering
from typing import List, Tuple, Union

from component.modules.errors import InvalidVersion

_SEMVER_RE = re.compile(
    r"^v?(?P<major>\d+)"
    r"(?:\.(?P<minor>\d+))?"
    r"(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<pre>[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?"
    r"(?:\+(?P<meta>[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?$"
)


def _pre_key(part: str):
    # numeric identifiers sort before alphanumeric ones
    if part.isdigit():
        return (0, int(part), "")
    return (1, 0, part)


@total_ordering
class Version:
    __slots__ = ("major", "minor", "patch", "prerelease", "metadata", "original")

    def __init__(self, major: int, minor: int = 0, patch: int = 0,
                 prerelease: str = "", metadata: str = "", original: str = ""):
        self.major = major
        self.minor = minor
        self.patch = patch
        self.prerelease = prerelease
        self.metadata = metadata
        self.original = original or self._render()

    @classmethod
    def parse(cls, raw: Union[str, "Version"]) -> "Version":
        if isinstance(raw, Version):
            return raw
        if not isinstance(raw, str):
            raise InvalidVersion(repr(raw))
        text = raw.strip()
        m = _SEMVER_RE.match(text)
        if not m:
            raise InvalidVersion(raw)
        return cls(
            int(m.group("major")),
            int(m.group("minor") or 0),
            int(m.group("patch") or 0),
            m.group("pre") or "",
            m.group("meta") or "",
            original=text,
        )

    def _render(self) -> str:
        s = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            s += f"-{self.prerelease}"
        if self.metadata:
            s += f"+{self.metadata}"
        return s

    def _cmp_key(self) -> Tuple[int, int, int, Tuple[int, List]]:
        if not self.prerelease:
            pre = (1, [])
        else:
            pre = (0, [_pre_key(p) for p in self.prerelease.split(".")])
        return (self.major, self.minor, self.patch, pre)

    def __eq__(self, other):
        if isinstance(other, str):
            try:
                other = Version.parse(other)
            except InvalidVersion:
                return NotImplemented
        if not isinstance(other, Version):
            return NotImplemented
        return self._cmp_key() == other._cmp_key()

    def __lt__(self, other):
        if isinstance(other, str):
            other = Version.parse(other)
        if not isinstance(other, Version):
            return NotImplemented
        return self._cmp_key() < other._cmp_key()

    def __hash__(self):
        return hash((self.major, self.minor, self.patch, self.prerelease))

    def __str__(self):
        return self._render()

    def __repr__(self):
        return f"Version('{self._render()}')"


def parse_version(raw) -> Version:
    return Version.parse(raw)


def is_valid(raw) -> bool:
    try:
        Version.parse(raw)
    except InvalidVersion:
        return False
    return True


def parse_versions(raws) -> List[Version]:
    """Converte uma lista de strings; qualquer entrada inválida aborta tudo."""
    return [Version.parse(v) for v in raws]

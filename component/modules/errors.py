# component/modules/errors.py
"""
errors.py - hierarquia de exceções do gerenciador de componentes.

Toda falha visível ao chamador deriva de ComponentError, então a CLI pode
capturar uma única classe e ainda distinguir os casos que importam
(NotFound, AlreadyInstalled, ProcessError...).
"""

from __future__ import annotations
from typing import Iterable, Optional


class ComponentError(Exception):
    pass


class NotFound(ComponentError):
    pass


class InvalidVersion(ComponentError, ValueError):
    def __init__(self, version: str, reason: str = "invalid semantic version"):
        self.version = version
        super().__init__(f"{reason} '{version}'")


class AlreadyInstalled(ComponentError):
    def __init__(self, name: str, version: str):
        self.name = name
        self.version = version
        super().__init__(f"component '{name}' version '{version}' already installed")


class NotStaged(ComponentError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"component '{name}' not staged")


class CatalogServiceError(ComponentError):
    pass


class TransportError(ComponentError):
    def __init__(self, url: str, attempts: int, reason: object):
        self.url = url
        self.attempts = attempts
        self.reason = reason
        super().__init__(f"unable to download '{url}' after {attempts} attempt(s): {reason}")


class StageError(ComponentError):
    def __init__(self, step: str, message: str):
        self.step = step
        super().__init__(f"{step}: {message}")


class ValidationError(ComponentError):
    def __init__(self, filename: str, message: Optional[str] = None):
        self.filename = filename
        super().__init__(message or f"missing file '{filename}'")


class CommitError(ComponentError):
    def __init__(self, target: str, pending: Iterable[str], reason: object):
        self.target = target
        self.pending = list(pending)
        super().__init__(
            f"unable to commit into '{target}': {reason} (not moved: {', '.join(self.pending) or '-'})")


class SignatureFormatError(ComponentError):
    pass


class TrustChainError(ComponentError):
    pass


class InvalidTrustedComment(TrustChainError):
    pass


class InvalidRootSignature(TrustChainError):
    pass


class InvalidArtifactSignature(TrustChainError):
    pass


class NotExecutable(ComponentError):
    def __init__(self, name: str = ""):
        self.name = name
        super().__init__("component is not executable")


class ExecutableNotFound(ComponentError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"component executable not found: {path}")


class ProcessError(ComponentError):
    def __init__(self, cmd, returncode: int, stdout: str = "", stderr: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"component exited with status {returncode}")

# component/modules/status.py
"""
status.py - estado do ciclo de vida de um componente.

resolve_status() é uma função pura: combina o que o catálogo anuncia
(RemoteDescriptor) com o que existe em disco (LocalRecord). Quem altera o
disco precisa chamar de novo; nada aqui é cacheado.
"""

from __future__ import annotations
from enum import Enum
from typing import Optional

from component.modules.local import LocalRecord
from component.modules.remote import RemoteDescriptor


class Status(Enum):
    UNKNOWN = ("Unknown", "red")
    NOT_INSTALLED = ("Not Installed", "bright_black")
    INSTALLED = ("Installed", "green")
    UPDATE_AVAILABLE = ("Update Available", "yellow")
    DEVELOPMENT = ("Development", "cyan")
    DEPRECATED = ("Deprecated", "magenta")

    def __init__(self, label: str, color: str):
        self.label = label
        self.color = color

    @property
    def installed(self) -> bool:
        return self in (Status.INSTALLED, Status.UPDATE_AVAILABLE, Status.DEVELOPMENT, Status.DEPRECATED)

    def __str__(self):
        return self.label


def resolve_status(remote: Optional[RemoteDescriptor], local: Optional[LocalRecord]) -> Status:
    if local is not None:
        if not local.is_valid():
            return Status.UNKNOWN
        if remote is not None:
            if remote.latest_version > local.version():
                return Status.UPDATE_AVAILABLE
            return Status.INSTALLED
        if local.development:
            return Status.DEVELOPMENT
        return Status.DEPRECATED

    if remote is not None:
        return Status.NOT_INSTALLED

    return Status.UNKNOWN

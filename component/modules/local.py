# component/modules/local.py
"""
local.py - evidência em disco de um componente instalado.

Layout do cache de instalação:

    <cache-root>/<nome>/
        <nome>        executável/biblioteca
        .version      versão SemVer (texto)
        .signature    assinatura do artefato (bruta ou base64)
        .dev          presença => modo desenvolvimento (JSON DevInfo)
    <cache-root>/cdk_cache   descritores remotos dos componentes instalados (JSON)

LocalRecord não guarda nada em memória além do diretório: versão, assinatura
e flag de desenvolvimento são lidas do disco a cada acesso.
"""

from __future__ import annotations
import json
import os
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, Optional

from component.modules.errors import InvalidVersion, NotFound, ValidationError
from component.modules.remote import ComponentType, RemoteDescriptor, host_os
from component.modules.utils import Utils
from component.modules.version import Version
from component.modules import logger as _logger

VERSION_FILE = ".version"
SIGNATURE_FILE = ".signature"
DEVELOPMENT_FILE = ".dev"
DEV_VERSION = "0.0.0-dev"
DESCRIPTOR_CACHE = "cdk_cache"

LOG = _logger.Logger("local")


def payload_name(name: str) -> str:
    if host_os() == "windows":
        return f"{name}.exe"
    return name


@dataclass
class DevInfo:
    name: str
    version: str = DEV_VERSION
    description: str = ""
    type: ComponentType = ComponentType.EMPTY

    @classmethod
    def load(cls, install_dir: str) -> "DevInfo":
        name = os.path.basename(os.path.normpath(install_dir))
        path = os.path.join(install_dir, DEVELOPMENT_FILE)
        try:
            raw = json.loads(Utils.read_file(path) or "{}")
        except (OSError, ValueError) as e:
            LOG.debug(f"Ignoring unreadable {path}: {e}")
            raw = {}
        if not isinstance(raw, dict):
            raw = {}
        return cls(
            name=raw.get("name") or name,
            version=raw.get("version") or DEV_VERSION,
            description=raw.get("description") or raw.get("desc") or "",
            type=ComponentType.from_value(raw.get("type") or raw.get("componentType")),
        )

    def dump(self, install_dir: str) -> str:
        data = asdict(self)
        data["type"] = self.type.value
        path = os.path.join(install_dir, DEVELOPMENT_FILE)
        Utils.write_file(path, json.dumps(data, indent=2) + "\n")
        return path


class LocalRecord:
    def __init__(self, install_dir: str):
        self.install_dir = os.path.abspath(install_dir)

    @property
    def name(self) -> str:
        return os.path.basename(os.path.normpath(self.install_dir))

    @property
    def payload_path(self) -> str:
        return os.path.join(self.install_dir, payload_name(self.name))

    @property
    def development(self) -> bool:
        return os.path.exists(os.path.join(self.install_dir, DEVELOPMENT_FILE))

    def version(self) -> Version:
        path = os.path.join(self.install_dir, VERSION_FILE)
        if not Utils.file_exists(path):
            raise NotFound(f"missing file '{VERSION_FILE}' for component '{self.name}'")
        return Version.parse(Utils.read_file(path).strip())

    def signature(self) -> bytes:
        path = os.path.join(self.install_dir, SIGNATURE_FILE)
        if not Utils.file_exists(path):
            raise NotFound(f"missing file '{SIGNATURE_FILE}' for component '{self.name}'")
        return Utils.read_bytes(path)

    def dev_info(self) -> Optional[DevInfo]:
        if not self.development:
            return None
        return DevInfo.load(self.install_dir)

    def validate(self) -> None:
        """Levanta ValidationError se o registro não puder ser considerado instalado."""
        try:
            self.version()
        except NotFound:
            raise ValidationError(VERSION_FILE)
        except InvalidVersion as e:
            raise ValidationError(VERSION_FILE, f"invalid version for component '{self.name}': {e}")
        if not Utils.file_exists(os.path.join(self.install_dir, SIGNATURE_FILE)):
            raise ValidationError(SIGNATURE_FILE)
        if not Utils.file_exists(self.payload_path):
            raise ValidationError(payload_name(self.name))

    def is_valid(self) -> bool:
        try:
            self.validate()
        except ValidationError:
            return False
        return True

    def __repr__(self):
        return f"LocalRecord('{self.install_dir}')"


def scan_cache(cache_dir: str) -> Dict[str, LocalRecord]:
    """Um LocalRecord por subdiretório do cache; arquivos soltos são ignorados."""
    records = {}
    for sub in Utils.list_subdirs(cache_dir):
        records[sub] = LocalRecord(os.path.join(cache_dir, sub))
    LOG.debug(f"Found {len(records)} local component dir(s) in {cache_dir}")
    return records


def load_record(cache_dir: str, name: str) -> Optional[LocalRecord]:
    path = os.path.join(cache_dir, name)
    if os.path.isdir(path):
        return LocalRecord(path)
    return None


# ------------------------
# Cache de descritores (cdk_cache)
# ------------------------
def load_descriptor_cache(cache_dir: str) -> Dict[str, RemoteDescriptor]:
    """
    Lê o cdk_cache: o que o catálogo dizia sobre cada componente na última
    vez em que esteve acessível. Arquivo ausente ou corrompido vale como vazio;
    entradas inválidas são descartadas uma a uma.
    """
    path = os.path.join(cache_dir, DESCRIPTOR_CACHE)
    if not Utils.file_exists(path):
        return {}
    try:
        raw = json.loads(Utils.read_file(path) or "{}")
    except (OSError, ValueError) as e:
        LOG.warning(f"Ignoring unreadable descriptor cache {path}: {e}")
        return {}
    if not isinstance(raw, dict):
        LOG.warning(f"Ignoring malformed descriptor cache {path}")
        return {}

    descriptors = {}
    for name, entry in raw.items():
        try:
            descriptors[name] = RemoteDescriptor.from_dict(entry)
        except (InvalidVersion, AttributeError, TypeError, ValueError) as e:
            LOG.warning(f"Dropping cached descriptor for {name}: {e}")
    return descriptors


def save_descriptor_cache(cache_dir: str, descriptors: Iterable[RemoteDescriptor]) -> str:
    """Grava o cdk_cache por inteiro (arquivo temporário + rename)."""
    path = os.path.join(Utils.ensure_dir(cache_dir), DESCRIPTOR_CACHE)
    data = {d.name: d.to_dict() for d in sorted(descriptors, key=lambda d: d.name)}
    tmp = path + ".tmp"
    Utils.write_file(tmp, json.dumps(data, indent=2) + "\n")
    os.replace(tmp, path)
    return path

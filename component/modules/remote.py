# component/modules/remote.py
"""
remote.py - o que o serviço de catálogo anuncia sobre cada componente.

 - RemoteDescriptor: snapshot imutável de um componente listado pelo catálogo
 - ArtifactDescriptor: onde baixar uma versão específica (URL, tamanho, assinatura)
 - CatalogService: cliente HTTP mínimo (GET + JSON) para as três consultas
   que o gerenciador precisa: listar componentes, listar versões e buscar
   o artefato de uma versão.
"""

from __future__ import annotations
import platform
import sys
import urllib.parse
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import yaml

from component.modules.config import config
from component.modules.errors import CatalogServiceError, InvalidVersion
from component.modules.transport import RetryPolicy, get_json
from component.modules.version import Version, parse_versions
from component.modules import logger as _logger

LOG = _logger.Logger("remote")


class ComponentType(str, Enum):
    BINARY = "binary"
    COMMAND = "cli-command"
    LIBRARY = "library"
    STANDALONE = "standalone"
    EMPTY = ""

    @classmethod
    def from_value(cls, value: Optional[str]) -> "ComponentType":
        try:
            return cls(value or "")
        except ValueError:
            return cls.EMPTY

    @property
    def executable(self) -> bool:
        return self in (ComponentType.BINARY, ComponentType.COMMAND)


@dataclass(frozen=True)
class RemoteDescriptor:
    id: int
    name: str
    latest_version: Version
    all_versions: Tuple[Version, ...] = ()
    description: str = ""
    size_kb: int = 0
    deprecated: bool = False
    type: ComponentType = ComponentType.EMPTY

    @classmethod
    def from_api(cls, raw: Dict[str, Any], all_versions=None) -> "RemoteDescriptor":
        """
        Constrói a partir de uma entrada da resposta "list components".
        Versão inválida é erro fatal (InvalidVersion), com o nome do componente.
        """
        name = raw.get("name", "")
        try:
            latest = Version.parse(raw.get("version", ""))
        except InvalidVersion as e:
            raise InvalidVersion(str(raw.get("version")),
                                 f"component '{name}' has invalid semantic version") from e
        return cls(
            id=int(raw.get("id", 0)),
            name=name,
            latest_version=latest,
            all_versions=tuple(all_versions or ()),
            description=raw.get("description", "") or "",
            size_kb=int(raw.get("size", 0) or 0),
            deprecated=bool(raw.get("deprecated", False)),
            type=ComponentType.from_value(raw.get("componentType") or raw.get("type")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Mesmas chaves da API, mais a lista de versões já conhecidas."""
        return {
            "id": self.id,
            "name": self.name,
            "version": str(self.latest_version),
            "versions": [str(v) for v in self.all_versions],
            "description": self.description,
            "size": self.size_kb,
            "deprecated": self.deprecated,
            "componentType": self.type.value,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "RemoteDescriptor":
        return cls.from_api(raw, parse_versions(raw.get("versions") or []))


@dataclass(frozen=True)
class ArtifactDescriptor:
    id: int
    name: str
    version: str
    url: str
    size_kb: int = 0
    signature: str = ""
    install_message: str = ""
    update_message: str = ""

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "ArtifactDescriptor":
        return cls(
            id=int(raw.get("id", 0)),
            name=raw.get("name", ""),
            version=raw.get("version", ""),
            url=raw.get("artifactUrl", ""),
            size_kb=int(raw.get("size", 0) or 0),
            signature=raw.get("signature", "") or "",
            install_message=raw.get("installMessage", "") or "",
            update_message=raw.get("updateMessage", "") or "",
        )


def host_os() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "darwin"
    return "linux"


def host_arch() -> str:
    machine = platform.machine().lower()
    return {"x86_64": "amd64", "amd64": "amd64", "aarch64": "arm64", "arm64": "arm64"}.get(machine, machine)


class CatalogService:
    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 policy: Optional[RetryPolicy] = None,
                 os_name: Optional[str] = None, arch: Optional[str] = None):
        self.base_url = (base_url or config.get("catalog", "api_url", fallback="") or "").rstrip("/")
        if not self.base_url:
            raise CatalogServiceError("catalog api_url not configured")
        self.token = token or config.get("catalog", "token", fallback=None)
        self.policy = policy
        self.os_name = os_name or host_os()
        self.arch = arch or host_arch()

    def _headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def _get(self, path: str, **params) -> List[Dict[str, Any]]:
        query = {"os": self.os_name, "arch": self.arch}
        query.update({k: v for k, v in params.items() if v is not None})
        url = f"{self.base_url}/{path}?{urllib.parse.urlencode(query)}"
        LOG.debug(f"GET {url}")
        payload = get_json(url, headers=self._headers(), policy=self.policy)
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            raise CatalogServiceError(f"invalid catalog response for {path}")
        return payload["data"]

    def list_components(self, include_versions: bool = False) -> List[RemoteDescriptor]:
        data = self._get("Components")
        raw_components = data[0].get("components", []) if data else []
        result = []
        for raw in raw_components:
            versions = self.list_versions(int(raw.get("id", 0))) if include_versions else ()
            result.append(RemoteDescriptor.from_api(raw, versions))
        LOG.info(f"Catalog lists {len(result)} component(s)")
        return result

    def list_versions(self, component_id: int) -> List[Version]:
        data = self._get(f"Components/{component_id}")
        raws = data[0].get("versions", []) if data else []
        return parse_versions(raws)

    def fetch_artifact(self, component_id: int, version: str) -> ArtifactDescriptor:
        data = self._get(f"Components/Artifact/{component_id}", version=version)
        if not data:
            raise CatalogServiceError("invalid API response: no artifact returned")
        return ArtifactDescriptor.from_api(data[0])


@dataclass
class StaticCatalogService:
    """
    Serviço de catálogo em memória: útil para testes e para operar offline
    a partir de um snapshot já baixado.
    """
    components: List[Dict[str, Any]] = field(default_factory=list)
    versions: Dict[int, List[str]] = field(default_factory=dict)
    artifacts: Dict[Tuple[int, str], Dict[str, Any]] = field(default_factory=dict)

    def list_components(self, include_versions: bool = False) -> List[RemoteDescriptor]:
        result = []
        for raw in self.components:
            cid = int(raw.get("id", 0))
            versions = self.list_versions(cid) if include_versions else ()
            result.append(RemoteDescriptor.from_api(raw, versions))
        return result

    def list_versions(self, component_id: int) -> List[Version]:
        return parse_versions(self.versions.get(component_id, []))

    def fetch_artifact(self, component_id: int, version: str) -> ArtifactDescriptor:
        raw = self.artifacts.get((component_id, version))
        if raw is None:
            raise CatalogServiceError(f"component version '{version}' not found")
        return ArtifactDescriptor.from_api(raw)

    @classmethod
    def from_file(cls, path: str) -> "StaticCatalogService":
        """
        Carrega um snapshot YAML (ou JSON, que o parser YAML também aceita):

            components: [{id, name, version, description, size, componentType}, ...]
            versions: {<id>: ["1.0.0", ...]}
            artifacts: [{id, version, artifactUrl, signature, installMessage}, ...]

        Versões devem vir entre aspas; "1.10" sem aspas vira float.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise CatalogServiceError(f"unable to load catalog snapshot {path}: {e}") from e
        if not isinstance(data, dict):
            raise CatalogServiceError(f"invalid catalog snapshot {path}")

        components = []
        for raw in data.get("components") or []:
            raw = dict(raw)
            raw["version"] = str(raw.get("version", ""))
            components.append(raw)
        versions = {int(k): [str(v) for v in vs or []] for k, vs in (data.get("versions") or {}).items()}
        artifacts = {}
        for raw in data.get("artifacts") or []:
            raw = dict(raw)
            raw["version"] = str(raw.get("version", ""))
            artifacts[(int(raw.get("id", 0)), raw["version"])] = raw
        LOG.debug(f"Loaded catalog snapshot {path}: {len(components)} component(s)")
        return cls(components, versions, artifacts)

# component/modules/catalog.py
"""
catalog.py - orquestrador do ciclo de vida dos componentes.

O Catalog junta duas fontes:
 - a lista anunciada pelo serviço de catálogo (buscada uma única vez);
 - uma varredura do cache de instalação (um subdiretório por componente).

e expõe as operações usadas pela CLI: get, list_versions, stage, verify,
install, delete, execute e enter_dev_mode.

O que o catálogo diz sobre cada componente é gravado em <cache>/cdk_cache;
sem serviço acessível, Catalog.local() reconstrói o catálogo a partir dele,
então componentes instalados continuam com tipo, descrição e executor.

Assimetria intencional na construção: um descritor remoto com versão
inválida aborta a criação do catálogo inteiro, enquanto um componente
local com versão inválida continua no catálogo com status UNKNOWN.

O mapa não é seguro para uso concorrente; operações sobre o mesmo
componente devem ser serializadas pelo chamador.
"""

from __future__ import annotations
import dataclasses
import os
import shutil
import tarfile
import zlib
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from component.modules.config import config
from component.modules.errors import (
    AlreadyInstalled,
    CatalogServiceError,
    ComponentError,
    NotFound,
    NotStaged,
    StageError,
    ValidationError,
)
from component.modules.executor import Executor, NonExecutable
from component.modules.local import (
    DEV_VERSION,
    DevInfo,
    LocalRecord,
    load_descriptor_cache,
    load_record,
    payload_name,
    save_descriptor_cache,
    scan_cache,
)
from component.modules.remote import ComponentType, RemoteDescriptor
from component.modules.staging import StageFactory, Stager, new_stage_tar_gz
from component.modules.status import Status, resolve_status
from component.modules.transport import ProgressFn
from component.modules.trust import TrustVerifier, default_verifier
from component.modules.utils import Utils
from component.modules.version import Version
from component.modules import logger as _logger

LOG = _logger.Logger("catalog")

EXECUTABLE_MODE = 0o744


class Component:
    """
    Visão combinada de um componente: o que o catálogo anuncia (remote) e o
    que existe em disco (local). Status e executor são recalculados por
    refresh() após qualquer mudança no disco.
    """

    def __init__(self, name: str,
                 remote: Optional[RemoteDescriptor] = None,
                 local: Optional[LocalRecord] = None):
        self.name = name
        self.remote = remote
        self.local = local
        self.stage: Optional[Stager] = None
        self.install_message = ""
        self.update_message = ""
        self.refresh()

    def refresh(self) -> Status:
        self.status = resolve_status(self.remote, self.local)

        dev = self.local.dev_info() if self.local is not None else None
        if self.remote is not None:
            self.description = self.remote.description
            self.type = self.remote.type
        elif dev is not None:
            self.description = dev.description
            self.type = dev.type
        else:
            self.description = ""
            self.type = ComponentType.EMPTY

        if self.status.installed and self.type.executable:
            self.executor = Executor(self.name, self.local.install_dir)
        else:
            self.executor = NonExecutable(self.name)
        return self.status

    def installed_version(self) -> Optional[Version]:
        if self.local is None or not self.local.is_valid():
            return None
        return self.local.version()

    def latest_version(self) -> Optional[Version]:
        if self.remote is None:
            return None
        return self.remote.latest_version

    def display_version(self) -> str:
        if self.status == Status.DEVELOPMENT:
            dev = self.local.dev_info()
            return dev.version if dev else DEV_VERSION
        if self.status == Status.NOT_INSTALLED:
            return str(self.latest_version())
        installed = self.installed_version()
        return str(installed) if installed else ""

    def summary(self) -> List[str]:
        return [self.status.label, self.name, self.display_version(), self.description]

    def __repr__(self):
        return f"Component(name='{self.name}', status={self.status.name})"


class Catalog:
    def __init__(self,
                 remote_list: Iterable[Union[RemoteDescriptor, dict]],
                 stage_factory: Optional[StageFactory],
                 service=None,
                 cache_dir: Optional[str] = None,
                 verifier: Optional[TrustVerifier] = None):
        if stage_factory is None:
            raise ComponentError("catalog requires a stage factory")
        self.stage_factory = stage_factory
        self.service = service
        self.cache_dir = os.path.abspath(cache_dir or config.cache_dir())
        Utils.ensure_dir(self.cache_dir)
        self._verifier = verifier

        local = scan_cache(self.cache_dir)
        components: Dict[str, Component] = {}

        for raw in remote_list:
            remote = raw if isinstance(raw, RemoteDescriptor) else RemoteDescriptor.from_api(raw)
            components[remote.name] = Component(remote.name, remote, local.pop(remote.name, None))

        for name, record in local.items():
            components[name] = Component(name, None, record)

        self.components = components
        LOG.debug(f"Catalog built with {len(components)} component(s) from {self.cache_dir}")

    @classmethod
    def load(cls, service, stage_factory: StageFactory = new_stage_tar_gz,
             include_versions: bool = False, **kwargs) -> "Catalog":
        """Busca a lista remota uma única vez e constrói o catálogo."""
        remote = service.list_components(include_versions=include_versions)
        return cls(remote, stage_factory, service=service, **kwargs)

    @classmethod
    def local(cls, stage_factory: StageFactory = new_stage_tar_gz,
              cache_dir: Optional[str] = None, **kwargs) -> "Catalog":
        """
        Catálogo sem serviço: os descritores vêm do cdk_cache gravado em
        instalações anteriores. Componentes em disco sem entrada no cache
        entram como locais (tipo do .dev, se houver).
        """
        cache_dir = os.path.abspath(cache_dir or config.cache_dir())
        cached = load_descriptor_cache(cache_dir)
        LOG.debug(f"Offline catalog from {len(cached)} cached descriptor(s)")
        return cls(list(cached.values()), stage_factory, service=None, cache_dir=cache_dir, **kwargs)

    @property
    def verifier(self) -> TrustVerifier:
        if self._verifier is None:
            self._verifier = default_verifier()
        return self._verifier

    # ------------------------
    # Consultas
    # ------------------------
    def __len__(self):
        return len(self.components)

    def __contains__(self, name):
        return name in self.components

    def __iter__(self) -> Iterator[Component]:
        return iter(self.list_components())

    def get(self, name: str) -> Component:
        try:
            return self.components[name]
        except KeyError:
            raise NotFound(f"component {name} not found") from None

    def list_components(self) -> List[Component]:
        return [self.components[n] for n in sorted(self.components)]

    def summary_rows(self) -> List[List[str]]:
        return [c.summary() for c in self.list_components()]

    def component_dir(self, name: str) -> str:
        return os.path.join(self.cache_dir, name)

    def _require_service(self):
        if self.service is None:
            raise CatalogServiceError("no catalog service configured")
        return self.service

    def list_versions(self, component: Component) -> List[Version]:
        if component.remote is None:
            raise NotFound(f"component '{component.name}' is not published in the catalog")
        if component.remote.all_versions:
            return list(component.remote.all_versions)
        return self._require_service().list_versions(component.remote.id)

    # ------------------------
    # Persistência (cdk_cache)
    # ------------------------
    def persist(self) -> str:
        """Grava os descritores de todos os componentes anunciados."""
        cached = load_descriptor_cache(self.cache_dir)
        for comp in self.components.values():
            if comp.remote is not None:
                cached[comp.name] = comp.remote
        return save_descriptor_cache(self.cache_dir, cached.values())

    def persist_component(self, component: Component) -> str:
        """
        Grava o descritor de um componente. Se a lista de versões ainda não
        foi buscada, busca agora; sem serviço (ou com falha) grava sem ela.
        """
        if component.remote is None:
            raise NotFound(f"component '{component.name}' is not published in the catalog")
        remote = component.remote
        if not remote.all_versions and self.service is not None:
            try:
                versions = self.service.list_versions(remote.id)
            except ComponentError as e:
                LOG.warning(f"Unable to fetch versions of {component.name}, caching without them: {e}")
            else:
                remote = dataclasses.replace(remote, all_versions=tuple(versions))
                component.remote = remote
        cached = load_descriptor_cache(self.cache_dir)
        cached[component.name] = remote
        return save_descriptor_cache(self.cache_dir, cached.values())

    # ------------------------
    # Stage / Verify / Install / Delete
    # ------------------------
    def stage(self, component: Component, version: str = "",
              progress: Optional[ProgressFn] = None) -> Stager:
        """
        Baixa, extrai e valida a versão pedida (ou a mais recente) num
        diretório temporário. Em qualquer falha o estágio já foi fechado.
        O chamador fecha o estágio devolvido depois de install().
        """
        if component.remote is None:
            raise NotFound(f"component '{component.name}' is not published in the catalog")

        target = Version.parse(version) if version else component.remote.latest_version

        if component.local is not None and component.local.is_valid():
            if component.local.version() == target:
                raise AlreadyInstalled(component.name, str(target))

        artifact = self._require_service().fetch_artifact(component.remote.id, str(target))
        component.install_message = artifact.install_message
        component.update_message = artifact.update_message

        if component.stage is not None:
            component.stage.close()
            component.stage = None

        stage = self.stage_factory(component.name, artifact.url, artifact.size_kb)
        steps = (
            ("download", lambda: stage.download(progress)),
            ("unpack", stage.unpack),
            ("validate", stage.validate),
        )
        try:
            for step, run in steps:
                try:
                    run()
                except ComponentError:
                    LOG.error(f"Stage {step} failed for {component.name} {target}")
                    raise
                except (OSError, EOFError, tarfile.TarError, zlib.error) as e:
                    raise StageError(step, str(e)) from e
        except BaseException:
            stage.close()
            raise

        component.stage = stage
        LOG.info(f"Staged {component.name} {target} in {stage.directory}")
        return stage

    def verify(self, component: Component) -> None:
        if component.stage is None:
            raise NotStaged(component.name)
        path = os.path.join(component.stage.directory, payload_name(component.name))
        if not Utils.file_exists(path):
            raise ValidationError(payload_name(component.name))
        data = Utils.read_bytes(path)
        sig = component.stage.signature()
        self.verifier.verify(data, sig)
        LOG.info(f"Signature verified for {component.name}")

    def install(self, component: Component) -> None:
        if component.stage is None:
            raise NotStaged(component.name)

        target = Utils.ensure_dir(self.component_dir(component.name))
        component.stage.commit(target)

        if component.type.executable:
            os.chmod(os.path.join(target, payload_name(component.name)), EXECUTABLE_MODE)

        component.local = load_record(self.cache_dir, component.name)
        component.refresh()
        if component.remote is not None:
            try:
                self.persist_component(component)
            except OSError as e:
                LOG.warning(f"Unable to update descriptor cache for {component.name}: {e}")
        version = component.installed_version()
        LOG.success(f"Installed {component.name} {version} into {target}", to_history=True)

    def delete(self, component: Component) -> None:
        """Remove o diretório de instalação; sem erro se não existir."""
        target = self.component_dir(component.name)
        if os.path.isdir(target) and not os.path.islink(target):
            shutil.rmtree(target)
            LOG.success(f"Deleted {component.name} from {target}", to_history=True)
        elif os.path.lexists(target):
            os.remove(target)
        component.local = None
        component.refresh()

    def enter_dev_mode(self, component: Component) -> str:
        if component.local is not None and component.local.development:
            raise ComponentError(f"component '{component.name}' already under development")

        target = Utils.ensure_dir(self.component_dir(component.name))
        desc = f"(dev-mode) {component.description}".rstrip()
        path = DevInfo(component.name, DEV_VERSION, desc, component.type).dump(target)
        component.local = load_record(self.cache_dir, component.name)
        component.refresh()
        LOG.info(f"Component {component.name} now in development mode ({path})")
        return path

    def execute(self, component: Component, args: Sequence[str] = (),
                env: Optional[Dict[str, str]] = None) -> Tuple[str, str]:
        return component.executor.execute(args, env)

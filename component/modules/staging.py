# component/modules/staging.py
r"""
staging.py - área temporária onde um artefato é baixado, extraído e validado
antes de ser instalado.

Ciclo de vida de um estágio:

    CREATED -> DOWNLOADED -> UNPACKED -> VALIDATED -> COMMITTED
        \__________\____________\___________\______-> CLOSED

close() pode ser chamado em qualquer estado (e mais de uma vez) e remove o
diretório temporário. Quem cria o estágio é responsável por fechá-lo em
todos os caminhos de saída; o estágio também funciona como context manager.

O formato do artefato é escolhido pela fábrica injetada no Catalog; hoje só
existe TarGzStage.
"""

from __future__ import annotations
import base64
import binascii
import errno
import gzip
import os
import shutil
import tarfile
import tempfile
import urllib.parse
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, Optional

from component.modules.errors import CommitError, InvalidVersion, NotStaged, StageError, ValidationError
from component.modules.local import SIGNATURE_FILE, VERSION_FILE, payload_name
from component.modules.transport import ProgressFn, RetryPolicy, download_file
from component.modules.utils import Utils
from component.modules.version import Version
from component.modules import logger as _logger

LOG = _logger.Logger("staging")


class StageState(Enum):
    CREATED = "created"
    DOWNLOADED = "downloaded"
    UNPACKED = "unpacked"
    VALIDATED = "validated"
    COMMITTED = "committed"
    CLOSED = "closed"


class Stager(ABC):
    """Capacidades que o Catalog espera de qualquer formato de artefato."""

    state: StageState = StageState.CREATED

    @property
    @abstractmethod
    def directory(self) -> str: ...

    @property
    @abstractmethod
    def filename(self) -> str: ...

    @abstractmethod
    def download(self, progress: Optional[ProgressFn] = None) -> None: ...

    @abstractmethod
    def unpack(self) -> None: ...

    @abstractmethod
    def validate(self) -> None: ...

    @abstractmethod
    def signature(self) -> bytes: ...

    @abstractmethod
    def commit(self, target_dir: str) -> None: ...

    @abstractmethod
    def close(self) -> None: ...

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


StageFactory = Callable[[str, str, int], Stager]


class TarGzStage(Stager):
    def __init__(self, name: str, artifact_url: str, size_kb: int = 0,
                 policy: Optional[RetryPolicy] = None):
        parsed = urllib.parse.urlparse(artifact_url)
        if not parsed.scheme:
            raise StageError("create", f"invalid artifact url '{artifact_url}'")
        self.name = name
        self.artifact_url = artifact_url
        self.size_kb = size_kb
        self.policy = policy
        self._path = parsed.path
        self._dir = tempfile.mkdtemp(prefix="component-stage-tar-gz-")
        self.state = StageState.CREATED
        LOG.debug(f"Stage for {name} created at {self._dir}")

    # ------------------------
    # Helpers
    # ------------------------
    @property
    def directory(self) -> str:
        return self._dir

    @property
    def filename(self) -> str:
        return os.path.basename(self._path) or f"{self.name}.tar.gz"

    def _require_dir(self):
        if not os.path.isdir(self._dir):
            raise NotStaged(self.name)

    def _tarball_name(self) -> str:
        fn = self.filename
        if fn.endswith(".tgz"):
            return fn[:-4] + ".tar"
        if fn.endswith(".gz"):
            return fn[:-3]
        return fn + ".tar"

    # ------------------------
    # Pipeline
    # ------------------------
    def download(self, progress: Optional[ProgressFn] = None) -> None:
        self._require_dir()
        dest = os.path.join(self._dir, self.filename)
        download_file(self.artifact_url, dest, progress=progress,
                      total=self.size_kb * 1024, policy=self.policy)
        self.state = StageState.DOWNLOADED
        LOG.info(f"Downloaded {self.artifact_url} -> {dest}")

    def unpack(self) -> None:
        self._require_dir()
        gz_file = os.path.join(self._dir, self.filename)
        tarball = os.path.join(self._dir, self._tarball_name())

        with gzip.open(gz_file, "rb") as src, open(tarball, "wb") as out:
            shutil.copyfileobj(src, out)

        root = os.path.realpath(self._dir)
        with tarfile.open(tarball, "r:") as tar:
            for member in tar.getmembers():
                target = os.path.realpath(os.path.join(root, member.name))
                if target != root and not target.startswith(root + os.sep):
                    raise StageError("unpack", f"archive member escapes stage directory: {member.name}")
                if not (member.isdir() or member.isfile()):
                    LOG.debug(f"Skipping non regular archive member {member.name}")
                    continue
                if hasattr(tarfile, "data_filter"):
                    tar.extract(member, path=root, filter="data")
                else:
                    tar.extract(member, path=root)

        os.remove(gz_file)
        os.remove(tarball)
        self.state = StageState.UNPACKED
        LOG.debug(f"Unpacked {self.filename} into {self._dir}")

    def validate(self) -> None:
        self._require_dir()
        version_path = os.path.join(self._dir, VERSION_FILE)
        if not Utils.file_exists(version_path):
            raise ValidationError(VERSION_FILE)
        raw = Utils.read_file(version_path)
        try:
            Version.parse(raw.strip())
        except InvalidVersion:
            raise ValidationError(
                VERSION_FILE,
                f"invalid staged semantic version '{raw.strip()}' for component '{self.name}'")

        if not Utils.file_exists(os.path.join(self._dir, SIGNATURE_FILE)):
            raise ValidationError(SIGNATURE_FILE)

        payload = payload_name(self.name)
        if not Utils.file_exists(os.path.join(self._dir, payload)):
            raise ValidationError(payload)

        self.state = StageState.VALIDATED

    def signature(self) -> bytes:
        self._require_dir()
        path = os.path.join(self._dir, SIGNATURE_FILE)
        if not Utils.file_exists(path):
            raise ValidationError(SIGNATURE_FILE)
        sig = Utils.read_bytes(path)
        # the artifact signature may or may not be base64 encoded
        try:
            return base64.b64decode(sig.strip(), validate=True)
        except (binascii.Error, ValueError):
            return sig

    def commit(self, target_dir: str) -> None:
        self._require_dir()
        if not os.path.isdir(target_dir):
            raise CommitError(target_dir, [], "target install directory doesn't exist")

        pending: List[str] = sorted(os.listdir(self._dir))
        while pending:
            entry = pending[0]
            src = os.path.join(self._dir, entry)
            dest = os.path.join(target_dir, entry)
            try:
                if os.path.isdir(dest) and not os.path.islink(dest):
                    shutil.rmtree(dest)
                elif os.path.isdir(src) and os.path.lexists(dest):
                    os.remove(dest)
                try:
                    os.replace(src, dest)
                except OSError as e:
                    if e.errno != errno.EXDEV:
                        raise
                    shutil.move(src, dest)
            except OSError as e:
                LOG.error(f"Commit of {entry} into {target_dir} failed: {e}")
                raise CommitError(target_dir, pending, e) from e
            pending.pop(0)

        self.state = StageState.COMMITTED
        LOG.info(f"Committed stage of {self.name} into {target_dir}")

    def close(self) -> None:
        if os.path.exists(self._dir):
            shutil.rmtree(self._dir, ignore_errors=True)
            LOG.debug(f"Stage {self._dir} removed")
        self.state = StageState.CLOSED

    def __repr__(self):
        return f"TarGzStage(name='{self.name}', dir='{self._dir}', state={self.state.value})"


def new_stage_tar_gz(name: str, artifact_url: str, size_kb: int = 0) -> Stager:
    return TarGzStage(name, artifact_url, size_kb)

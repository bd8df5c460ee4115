# component/modules/executor.py
"""
executor.py - execução do binário de um componente instalado.

Só componentes de tipo executável (binary / cli-command) ganham um Executor;
os demais recebem NonExecutable, que falha sem tocar o sistema de arquivos.
"""

from __future__ import annotations
import os
import subprocess
from typing import Dict, List, Optional, Sequence, Tuple

from component.modules.errors import ExecutableNotFound, NotExecutable, ProcessError
from component.modules.local import payload_name
from component.modules.utils import Utils
from component.modules import logger as _logger

LOG = _logger.Logger("executor")


class NonExecutable:
    def __init__(self, name: str = ""):
        self.name = name

    def executable(self) -> bool:
        return False

    def execute(self, args: Sequence[str] = (), env: Optional[Dict[str, str]] = None,
                stdin: Optional[str] = None) -> Tuple[str, str]:
        raise NotExecutable(self.name)

    def execute_and_stream(self, args: Sequence[str] = (), env: Optional[Dict[str, str]] = None) -> None:
        raise NotExecutable(self.name)


class Executor:
    def __init__(self, name: str, install_dir: str):
        self.name = name
        self.install_dir = install_dir

    @property
    def path(self) -> str:
        return os.path.join(self.install_dir, payload_name(self.name))

    def executable(self) -> bool:
        return True

    def _command(self, args: Sequence[str]) -> List[str]:
        if not Utils.file_exists(self.path):
            raise ExecutableNotFound(self.path)
        return [self.path] + list(args)

    @staticmethod
    def _environ(env: Optional[Dict[str, str]]) -> Dict[str, str]:
        full_env = os.environ.copy()
        if env:
            full_env.update(env)
        return full_env

    def execute(self, args: Sequence[str] = (), env: Optional[Dict[str, str]] = None,
                stdin: Optional[str] = None) -> Tuple[str, str]:
        """Executa e retorna (stdout, stderr); status != 0 vira ProcessError."""
        cmd = self._command(args)
        LOG.debug(f"Running component: {' '.join(cmd)}")
        try:
            proc = subprocess.run(cmd, input=stdin, env=self._environ(env),
                                  stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
        except OSError as e:
            raise ExecutableNotFound(self.path) from e
        if proc.returncode != 0:
            raise ProcessError(cmd, proc.returncode, proc.stdout, proc.stderr)
        return proc.stdout, proc.stderr

    def execute_and_stream(self, args: Sequence[str] = (), env: Optional[Dict[str, str]] = None) -> None:
        """Executa herdando stdin/stdout/stderr do processo atual."""
        cmd = self._command(args)
        try:
            proc = subprocess.run(cmd, env=self._environ(env))
        except OSError as e:
            raise ExecutableNotFound(self.path) from e
        if proc.returncode != 0:
            raise ProcessError(cmd, proc.returncode)

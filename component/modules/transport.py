# component/modules/transport.py
"""
transport.py - downloads HTTP com tentativas limitadas e backoff exponencial.

Usado pelo estágio tar.gz (download do artefato) e pelo cliente do catálogo
(requisições JSON). Política:
 - no máximo `max_retries` novas tentativas após a primeira;
 - espera `backoff_base ** tentativa` segundos, limitada a `backoff_max`;
 - erros HTTP 4xx não são repetidos, exceto os de `retry_status_codes`
   (408 e 429 por padrão);
 - `timeout` limita cada tentativa inteira, não só cada leitura do socket;
 - esgotadas as tentativas, o último erro sobe como TransportError.
"""

from __future__ import annotations
import json
import os
import time
import urllib.error
import urllib.request
from typing import Any, Callable, Dict, Optional

from component.modules.config import config
from component.modules.errors import TransportError
from component.modules import logger as _logger

LOG = _logger.Logger("transport")

DEFAULTS = {
    "max_retries": 3,
    "backoff_base": 2.0,
    "backoff_max": 30.0,
    "timeout": 300.0,
}

CHUNK_SIZE = 64 * 1024

ProgressFn = Callable[[str, int, int], None]


class RetryPolicy:
    def __init__(self,
                 max_retries: Optional[int] = None,
                 backoff_base: Optional[float] = None,
                 backoff_max: Optional[float] = None,
                 timeout: Optional[float] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.max_retries = max(0, max_retries if max_retries is not None else
                               config.getint("download", "max_retries", fallback=DEFAULTS["max_retries"]))
        self.backoff_base = (backoff_base if backoff_base is not None else
                             config.getfloat("download", "backoff_base", fallback=DEFAULTS["backoff_base"]))
        self.backoff_max = (backoff_max if backoff_max is not None else
                            config.getfloat("download", "backoff_max", fallback=DEFAULTS["backoff_max"]))
        self.timeout = (timeout if timeout is not None else
                        config.getfloat("download", "timeout", fallback=DEFAULTS["timeout"]))
        codes = config.getlist("download", "retry_status_codes", fallback=["408", "429"])
        self.retry_status_codes = frozenset(int(c) for c in codes if c.isdigit())
        self.sleep = sleep

    def delay(self, attempt: int) -> float:
        return min(self.backoff_base ** attempt, self.backoff_max)


def _is_retryable(exc: BaseException, policy: RetryPolicy) -> bool:
    if isinstance(exc, urllib.error.HTTPError):
        return exc.code >= 500 or exc.code in policy.retry_status_codes
    return isinstance(exc, (urllib.error.URLError, OSError))


def with_retries(url: str, fn: Callable[[], Any], policy: Optional[RetryPolicy] = None):
    """Executa fn() até ter sucesso ou esgotar as tentativas."""
    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        if attempt > 0:
            backoff = policy.delay(attempt)
            LOG.info(f"Retry {attempt} for {url} after backoff {backoff:.1f}s")
            policy.sleep(backoff)
        try:
            return fn()
        except (urllib.error.URLError, OSError, ValueError) as e:
            attempt += 1
            if not _is_retryable(e, policy) or attempt > policy.max_retries:
                LOG.error(f"Download failed: {url}: {e}")
                raise TransportError(url, attempt, e) from e
            LOG.warning(f"Attempt {attempt} for {url} failed: {e}")


def download_file(url: str, dest: str,
                  progress: Optional[ProgressFn] = None,
                  total: int = 0,
                  policy: Optional[RetryPolicy] = None) -> str:
    """
    Baixa `url` para `dest`.

    O conteúdo é escrito em `dest + ".part"` e renomeado apenas quando o
    download termina; uma tentativa que falha apaga o arquivo parcial.
    """
    policy = policy or RetryPolicy()
    partial = dest + ".part"

    def _attempt():
        done = 0
        deadline = time.monotonic() + policy.timeout
        try:
            with urllib.request.urlopen(url, timeout=policy.timeout) as resp, open(partial, "wb") as out:
                # read1 returns what has arrived instead of waiting for a full chunk
                read = getattr(resp, "read1", resp.read)
                length = resp.headers.get("Content-Length") if resp.headers else None
                expected = int(length) if length and length.isdigit() else total
                if progress:
                    progress(dest, 0, expected)
                while True:
                    if time.monotonic() > deadline:
                        raise TimeoutError(f"download exceeded {policy.timeout:.1f}s ({done} bytes received)")
                    chunk = read(CHUNK_SIZE)
                    if not chunk:
                        break
                    out.write(chunk)
                    done += len(chunk)
                    if progress:
                        progress(dest, done, expected)
            os.replace(partial, dest)
        except BaseException:
            if os.path.exists(partial):
                os.remove(partial)
            raise
        return dest

    LOG.debug(f"Downloading {url} -> {dest}")
    return with_retries(url, _attempt, policy)


def get_json(url: str, headers: Optional[Dict[str, str]] = None,
             policy: Optional[RetryPolicy] = None) -> Any:
    policy = policy or RetryPolicy()

    def _attempt():
        req = urllib.request.Request(url, headers=dict(headers or {}, Accept="application/json"))
        with urllib.request.urlopen(req, timeout=policy.timeout) as resp:
            return json.loads(resp.read().decode("utf-8"))

    return with_retries(url, _attempt, policy)

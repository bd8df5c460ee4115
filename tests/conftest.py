"""Shared pytest fixtures: signing keys, tar.gz artifacts and a local catalog."""

from __future__ import annotations

import base64
import hashlib
import io
import os
import tarfile
from pathlib import Path
from typing import Dict, Optional

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from component.modules import logger as _logger
from component.modules.remote import StaticCatalogService
from component.modules.transport import RetryPolicy
from component.modules.trust import TrustVerifier

SCRIPT = b"#!/bin/sh\necho \"out:$1\"\necho \"err:$GREETING\" >&2\nexit ${EXIT_CODE:-0}\n"


@pytest.fixture(autouse=True)
def _no_log_files(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(_logger.Logger, "_write_file", lambda self, path, message: None)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class MinisignKey:
    """Par de chaves Ed25519 que escreve chaves e assinaturas no formato minisign."""

    def __init__(self, key_id: bytes):
        self.private = Ed25519PrivateKey.generate()
        self.key_id = key_id

    @property
    def public_line(self) -> str:
        raw = self.private.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        return _b64(b"Ed" + self.key_id + raw)

    @property
    def public_text(self) -> str:
        return f"untrusted comment: minisign public key {self.key_id.hex()}\n{self.public_line}\n"

    def sign(self, message: bytes, trusted_comment: str = "timestamp:1700000000", prehash: bool = False) -> str:
        alg = b"ED" if prehash else b"Ed"
        payload = hashlib.blake2b(message, digest_size=64).digest() if prehash else message
        sig = self.private.sign(payload)
        global_sig = self.private.sign(sig + trusted_comment.encode("utf-8"))
        return (
            "untrusted comment: signature from minisign secret key\n"
            f"{_b64(alg + self.key_id + sig)}\n"
            f"trusted comment: {trusted_comment}\n"
            f"{_b64(global_sig)}\n"
        )


class TrustChain:
    def __init__(self):
        self.root = MinisignKey(b"\x01" * 8)
        self.signer = MinisignKey(b"\x02" * 8)

    def trusted_comment(self, root: Optional[MinisignKey] = None, signer: Optional[MinisignKey] = None) -> str:
        root = root or self.root
        signer = signer or self.signer
        root_sig = root.sign(signer.public_line.encode("utf-8"), prehash=True)
        return f"timestamp:1700000000.{signer.public_line}.file:artifact.{_b64(root_sig.encode('utf-8'))}"

    def sign_artifact(self, data: bytes, signer: Optional[MinisignKey] = None,
                      trusted_comment: Optional[str] = None) -> str:
        signer = signer or self.signer
        comment = trusted_comment if trusted_comment is not None else self.trusted_comment(signer=signer)
        return signer.sign(hashlib.sha256(data).digest(), trusted_comment=comment)

    def verifier(self) -> TrustVerifier:
        return TrustVerifier(self.root.public_text)


@pytest.fixture
def chain() -> TrustChain:
    return TrustChain()


def build_tar_gz(path: Path, files: Dict[str, bytes]) -> Path:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, content in sorted(files.items()):
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(content))
    path.write_bytes(buf.getvalue())
    return path


@pytest.fixture
def make_artifact(tmp_path: Path, chain: TrustChain):
    """Cria <name>-<version>.tar.gz e devolve sua URL file://."""

    def _make(name: str, version: str, payload: bytes = SCRIPT,
              signature: Optional[str] = None, extra: Optional[Dict[str, bytes]] = None,
              skip: tuple = ()) -> str:
        files = {
            name: payload,
            ".version": f"{version}\n".encode(),
            ".signature": (signature if signature is not None else chain.sign_artifact(payload)).encode(),
        }
        files.update(extra or {})
        for fn in skip:
            files.pop(fn, None)
        out = tmp_path / "artifacts"
        out.mkdir(exist_ok=True)
        return build_tar_gz(out / f"{name}-{version}.tar.gz", files).as_uri()

    return _make


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    path = tmp_path / "components"
    path.mkdir()
    return path


def install_local(cache_dir: Path, name: str, version: Optional[str] = "1.0.0",
                  signature: bool = True, payload: bool = True, dev: Optional[str] = None) -> Path:
    path = cache_dir / name
    path.mkdir(parents=True, exist_ok=True)
    if version is not None:
        (path / ".version").write_text(version + "\n")
    if signature:
        (path / ".signature").write_text("sig")
    if payload:
        (path / name).write_bytes(SCRIPT)
        os.chmod(path / name, 0o755)
    if dev is not None:
        (path / ".dev").write_text(dev)
    return path


@pytest.fixture
def local_component():
    return install_local


@pytest.fixture
def no_sleep_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=2, backoff_base=2.0, backoff_max=30.0, timeout=5.0, sleep=lambda s: None)


@pytest.fixture
def service(make_artifact) -> StaticCatalogService:
    """Catálogo com 'scanner' (binary, 1.0.0 e 1.1.1) e 'docs' (library, 0.2.0)."""
    url_100 = make_artifact("scanner", "1.0.0")
    url_111 = make_artifact("scanner", "1.1.1")
    url_docs = make_artifact("docs", "0.2.0")
    return StaticCatalogService(
        components=[
            {"id": 1, "name": "scanner", "version": "1.1.1", "description": "IaC scanner",
             "size": 1, "componentType": "binary"},
            {"id": 2, "name": "docs", "version": "0.2.0", "description": "Offline docs",
             "size": 1, "componentType": "library"},
        ],
        versions={1: ["1.0.0", "1.1.1"], 2: ["0.2.0"]},
        artifacts={
            (1, "1.0.0"): {"id": 1, "name": "scanner", "version": "1.0.0", "artifactUrl": url_100},
            (1, "1.1.1"): {"id": 1, "name": "scanner", "version": "1.1.1", "artifactUrl": url_111,
                           "installMessage": "scanner ready", "updateMessage": "scanner updated"},
            (2, "0.2.0"): {"id": 2, "name": "docs", "version": "0.2.0", "artifactUrl": url_docs},
        },
    )

# component/modules/trust.py
"""
trust.py - verificação em duas camadas das assinaturas dos artefatos.

Assinaturas e chaves usam o formato texto do minisign (Ed25519):

    untrusted comment: <texto>
    <base64: algoritmo(2) key-id(8) assinatura(64)>
    trusted comment: <texto>
    <base64: assinatura global(64) sobre assinatura || trusted comment>

A cadeia de confiança:

 1. a chave raiz (embutida) assina a chave de assinatura intermediária;
 2. a chave intermediária assina o SHA-256 de cada artefato.

O trusted comment da assinatura do artefato carrega a autorização da
intermediária no formato "<n>.<chave intermediária>.<n>.<base64 da assinatura
raiz sobre a chave>". Uma intermediária comprometida pode ser trocada sem
tocar na raiz.
"""

from __future__ import annotations
import base64
import binascii
import hashlib
from dataclasses import dataclass
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from component.modules.config import config
from component.modules.errors import (
    InvalidArtifactSignature,
    InvalidRootSignature,
    InvalidTrustedComment,
    SignatureFormatError,
)
from component.modules import logger as _logger

LOG = _logger.Logger("trust")

ROOT_PUBLIC_KEY = """untrusted comment: minisign public key 3D7DA73751C18366
RWRmg8FRN6d9PdjL4G8v9Bfet05M476ZyYK2G6P3CrR3bqb1WMI7Z5w+
"""

ALG_PURE = b"Ed"
ALG_HASHED = b"ED"

UNTRUSTED_PREFIX = "untrusted comment:"
TRUSTED_PREFIX = "trusted comment:"

TRUSTED_COMMENT_SEGMENTS = 4


def _b64(data: str) -> bytes:
    return base64.b64decode(data.strip(), validate=True)


def _comment(line: str, prefix: str) -> str:
    # the global signature covers the comment text byte for byte
    text = line[len(prefix):]
    return text[1:] if text.startswith(" ") else text


@dataclass(frozen=True)
class PublicKey:
    algorithm: bytes
    key_id: bytes
    key: Ed25519PublicKey

    @classmethod
    def parse(cls, text: Union[str, bytes]) -> "PublicKey":
        if isinstance(text, bytes):
            text = text.decode("utf-8")
        lines = [ln.strip() for ln in text.strip().splitlines() if ln.strip()]
        if lines and lines[0].startswith(UNTRUSTED_PREFIX):
            lines = lines[1:]
        if len(lines) != 1:
            raise ValueError("invalid public key: expected a single base64 line")
        try:
            raw = _b64(lines[0])
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"invalid public key encoding: {e}") from e
        if len(raw) != 42 or raw[:2] != ALG_PURE:
            raise ValueError("invalid public key: unsupported algorithm or size")
        return cls(raw[:2], raw[2:10], Ed25519PublicKey.from_public_bytes(raw[10:]))

    @property
    def key_id_hex(self) -> str:
        return self.key_id[::-1].hex().upper()


@dataclass(frozen=True)
class Signature:
    algorithm: bytes
    key_id: bytes
    signature: bytes
    untrusted_comment: str
    trusted_comment: str
    global_signature: bytes

    @classmethod
    def parse(cls, text: Union[str, bytes]) -> "Signature":
        try:
            if isinstance(text, bytes):
                text = text.decode("utf-8")
            lines = text.strip().splitlines()
            if len(lines) != 4:
                raise ValueError(f"expected 4 lines, got {len(lines)}")
            if not lines[0].startswith(UNTRUSTED_PREFIX):
                raise ValueError("missing untrusted comment")
            if not lines[2].startswith(TRUSTED_PREFIX):
                raise ValueError("missing trusted comment")
            raw = _b64(lines[1])
            global_sig = _b64(lines[3])
        except (UnicodeDecodeError, binascii.Error, ValueError) as e:
            raise SignatureFormatError(f"unable to parse signature: {e}") from e

        if len(raw) != 74 or raw[:2] not in (ALG_PURE, ALG_HASHED):
            raise SignatureFormatError("unable to parse signature: unsupported algorithm or size")
        if len(global_sig) != 64:
            raise SignatureFormatError("unable to parse signature: invalid global signature size")

        return cls(
            algorithm=raw[:2],
            key_id=raw[2:10],
            signature=raw[10:],
            untrusted_comment=_comment(lines[0], UNTRUSTED_PREFIX),
            trusted_comment=_comment(lines[2], TRUSTED_PREFIX),
            global_signature=global_sig,
        )


def verify(public_key: PublicKey, message: bytes, signature: Union[Signature, str, bytes]) -> bool:
    """
    True se `signature` (minisign) assina `message` com `public_key`,
    incluindo a assinatura global sobre o trusted comment.
    """
    if not isinstance(signature, Signature):
        try:
            signature = Signature.parse(signature)
        except SignatureFormatError:
            return False
    if signature.key_id != public_key.key_id:
        return False

    payload = message
    if signature.algorithm == ALG_HASHED:
        payload = hashlib.blake2b(message, digest_size=64).digest()

    try:
        public_key.key.verify(signature.signature, payload)
        public_key.key.verify(signature.global_signature,
                              signature.signature + signature.trusted_comment.encode("utf-8"))
    except InvalidSignature:
        return False
    return True


class TrustVerifier:
    def __init__(self, root_public_key: Union[PublicKey, str, bytes]):
        if not isinstance(root_public_key, PublicKey):
            try:
                root_public_key = PublicKey.parse(root_public_key)
            except ValueError as e:
                raise InvalidRootSignature(f"unable to load root public key: {e}") from e
        self.root = root_public_key

    def verify(self, artifact: bytes, signature: Union[str, bytes]) -> None:
        """
        Verifica a cadeia raiz -> intermediária -> artefato.
        Não retorna nada; cada falha levanta sua própria exceção.
        """
        sig = Signature.parse(signature)

        parts = sig.trusted_comment.split(".")
        if len(parts) != TRUSTED_COMMENT_SEGMENTS:
            raise InvalidTrustedComment("invalid signature trusted comment")
        signing_key_text, root_sig_text = parts[1], parts[3]

        try:
            root_sig = _b64(root_sig_text)
        except (binascii.Error, ValueError) as e:
            raise InvalidRootSignature(f"unable to parse root signature from trusted comment: {e}") from e

        if not verify(self.root, signing_key_text.encode("utf-8"), root_sig):
            raise InvalidRootSignature("invalid root signature over signing key")

        try:
            signing_key = PublicKey.parse(signing_key_text)
        except ValueError as e:
            raise InvalidRootSignature(f"unable to load signing key: {e}") from e

        digest = hashlib.sha256(artifact).digest()
        if not verify(signing_key, digest, sig):
            raise InvalidArtifactSignature("invalid signature over component")

        LOG.debug(f"Signature chain verified (root {self.root.key_id_hex}, signer {signing_key.key_id_hex})")


_default: Optional[TrustVerifier] = None


def default_verifier() -> TrustVerifier:
    """TrustVerifier com a chave raiz embutida (ou a de [trust] root_public_key)."""
    global _default
    if _default is None:
        key = config.get("trust", "root_public_key", fallback=None) or ROOT_PUBLIC_KEY
        _default = TrustVerifier(key)
    return _default

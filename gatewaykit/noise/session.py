"""Noise XX sessions using X25519, ChaCha20-Poly1305 and SHA-256."""

from __future__ import annotations

import hashlib
import hmac
import secrets
from enum import IntEnum

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric.x25519 import (
    X25519PrivateKey,
    X25519PublicKey,
)
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from gatewaykit.rw import LimitExceededError

PROTOCOL_NAME = b"Noise_XX_25519_ChaChaPoly_SHA256"
MAX_MESSAGE_SIZE = 65535
SESSION_ID_SIZE = 32
DH_LEN = 32
HASH_LEN = 32
TAG_LEN = 16

_MAX_NONCE = 2**64 - 1
_XX_PATTERN = (("e",), ("e", "ee", "s", "es"), ("s", "se"))


class ReadyToUpgrade(Exception):
    """The handshake has completed and the session should be upgraded."""

    def __init__(self) -> None:
        super().__init__("session is ready to upgrade")


class HandshakeStage(IntEnum):
    """Completion stage of a session's handshake."""

    INIT = 0
    COMPLETED = 1
    CLOSED = 2


def _public_bytes(key: X25519PrivateKey) -> bytes:
    return key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)


def _hkdf(chaining_key: bytes, ikm: bytes) -> tuple[bytes, bytes]:
    temp = hmac.new(chaining_key, ikm, hashlib.sha256).digest()
    first = hmac.new(temp, b"\x01", hashlib.sha256).digest()
    second = hmac.new(temp, first + b"\x02", hashlib.sha256).digest()
    return first, second


def _check_size(data: bytes) -> bytes:
    if len(data) > MAX_MESSAGE_SIZE:
        raise LimitExceededError()
    return bytes(data)


class _CipherState:
    def __init__(self, key: bytes | None = None) -> None:
        self._aead = ChaCha20Poly1305(key) if key is not None else None
        self._nonce = 0

    @property
    def has_key(self) -> bool:
        return self._aead is not None

    def _nonce_bytes(self) -> bytes:
        if self._nonce >= _MAX_NONCE:
            raise ValueError("noise: cipher nonce exhausted")
        return b"\x00" * 4 + self._nonce.to_bytes(8, "little")

    def encrypt(self, ad: bytes, plaintext: bytes) -> bytes:
        if self._aead is None:
            return plaintext
        ciphertext = self._aead.encrypt(self._nonce_bytes(), plaintext, ad)
        self._nonce += 1
        return ciphertext

    def decrypt(self, ad: bytes, ciphertext: bytes) -> bytes:
        if self._aead is None:
            return ciphertext
        try:
            plaintext = self._aead.decrypt(self._nonce_bytes(), ciphertext, ad)
        except InvalidTag as exc:
            raise ValueError("noise: authentication failed") from exc
        self._nonce += 1
        return plaintext


class _SymmetricState:
    def __init__(self) -> None:
        if len(PROTOCOL_NAME) <= HASH_LEN:
            self.h = PROTOCOL_NAME.ljust(HASH_LEN, b"\x00")
        else:
            self.h = hashlib.sha256(PROTOCOL_NAME).digest()
        self.ck = self.h
        self.cipher = _CipherState()

    def mix_hash(self, data: bytes) -> None:
        self.h = hashlib.sha256(self.h + data).digest()

    def mix_key(self, ikm: bytes) -> None:
        self.ck, temp = _hkdf(self.ck, ikm)
        self.cipher = _CipherState(temp)

    def encrypt_and_hash(self, plaintext: bytes) -> bytes:
        ciphertext = self.cipher.encrypt(self.h, plaintext)
        self.mix_hash(ciphertext)
        return ciphertext

    def decrypt_and_hash(self, ciphertext: bytes) -> bytes:
        plaintext = self.cipher.decrypt(self.h, ciphertext)
        self.mix_hash(ciphertext)
        return plaintext

    def split(self) -> tuple[_CipherState, _CipherState]:
        first, second = _hkdf(self.ck, b"")
        return _CipherState(first), _CipherState(second)


_Ciphers = tuple[_CipherState, _CipherState]


class _HandshakeState:
    def __init__(self, initiator: bool, static_key: X25519PrivateKey) -> None:
        self.initiator = initiator
        self.s = static_key
        self.e: X25519PrivateKey | None = None
        self.re: bytes | None = None
        self.rs: bytes | None = None
        self.ss = _SymmetricState()
        self.ss.mix_hash(b"")
        self._index = 0

    def _check_turn(self, writing: bool) -> tuple[str, ...]:
        if self._index >= len(_XX_PATTERN):
            raise ValueError("noise: no handshake messages left")
        initiator_turn = self._index % 2 == 0
        if (initiator_turn == self.initiator) != writing:
            expected = "write_message" if not writing else "read_message"
            raise ValueError(f"noise: unexpected call, should be {expected}")
        return _XX_PATTERN[self._index]

    def _dh(self, token: str) -> bytes:
        first, second = token
        local, remote = (first, second) if self.initiator else (second, first)
        private = self.e if local == "e" else self.s
        public = self.re if remote == "e" else self.rs
        if private is None or public is None:
            raise ValueError("noise: missing key for key exchange")
        return private.exchange(X25519PublicKey.from_public_bytes(public))

    def _finish(self) -> _Ciphers | None:
        self._index += 1
        if self._index < len(_XX_PATTERN):
            return None
        first, second = self.ss.split()
        return (first, second) if self.initiator else (second, first)

    def write_message(self, payload: bytes) -> tuple[bytes, _Ciphers | None]:
        tokens = self._check_turn(writing=True)
        out = bytearray()
        for token in tokens:
            if token == "e":
                self.e = X25519PrivateKey.generate()
                public = _public_bytes(self.e)
                out += public
                self.ss.mix_hash(public)
            elif token == "s":
                out += self.ss.encrypt_and_hash(_public_bytes(self.s))
            else:
                self.ss.mix_key(self._dh(token))
        out += self.ss.encrypt_and_hash(payload)
        return bytes(out), self._finish()

    def read_message(self, message: bytes) -> tuple[bytes, _Ciphers | None]:
        tokens = self._check_turn(writing=False)
        rest = message
        for token in tokens:
            if token == "e":
                if len(rest) < DH_LEN:
                    raise ValueError("noise: message is too short")
                self.re, rest = rest[:DH_LEN], rest[DH_LEN:]
                self.ss.mix_hash(self.re)
            elif token == "s":
                size = DH_LEN + (TAG_LEN if self.ss.cipher.has_key else 0)
                if len(rest) < size:
                    raise ValueError("noise: message is too short")
                self.rs = self.ss.decrypt_and_hash(rest[:size])
                rest = rest[size:]
            else:
                self.ss.mix_key(self._dh(token))
        payload = self.ss.decrypt_and_hash(rest)
        return payload, self._finish()


class TransportHandler:
    """Encrypts and decrypts application payloads once the handshake is over."""

    def __init__(self, send_cipher: _CipherState, receive_cipher: _CipherState) -> None:
        self._send = send_cipher
        self._receive = receive_cipher
        self._ad = b""

    def write(self, data: bytes) -> bytes:
        """Encrypt a local payload for the remote endpoint."""
        return self._send.encrypt(self._ad, _check_size(data))

    def read(self, data: bytes) -> bytes:
        """Decrypt a payload received from the remote endpoint."""
        return self._receive.decrypt(self._ad, _check_size(data))


class HandshakeHandler:
    """Runs the XX handshake with the remote endpoint."""

    def __init__(
        self, initiator: bool = True, static_key: X25519PrivateKey | None = None
    ) -> None:
        key = static_key if static_key is not None else X25519PrivateKey.generate()
        self._state = _HandshakeState(initiator, key)
        self._stage = HandshakeStage.INIT
        self._ciphers: _Ciphers | None = None

    @property
    def stage(self) -> HandshakeStage:
        return self._stage

    def can_upgrade(self) -> bool:
        return self._stage is HandshakeStage.COMPLETED

    def upgrade(self) -> TransportHandler:
        """Hand the negotiated ciphers over to a :class:`TransportHandler`."""
        if self._stage is not HandshakeStage.COMPLETED:
            raise RuntimeError("Handshake has not completed")
        if self._ciphers is None:
            raise RuntimeError("Handshake is completed but the ciphers are not set")

        send, receive = self._ciphers
        self._stage = HandshakeStage.CLOSED
        self._ciphers = None
        return TransportHandler(send, receive)

    def read(self, data: bytes) -> bytes:
        """Process a handshake message from the remote endpoint, returning its payload."""
        self._check_open()
        payload, ciphers = self._state.read_message(_check_size(data))
        self._complete(ciphers)
        return payload

    def write(self, data: bytes) -> bytes:
        """Produce the next handshake message carrying ``data`` as payload."""
        self._check_open()
        message, ciphers = self._state.write_message(_check_size(data))
        self._complete(ciphers)
        return message

    def _check_open(self) -> None:
        if self._stage is HandshakeStage.COMPLETED:
            raise ReadyToUpgrade()
        if self._stage is HandshakeStage.CLOSED:
            raise RuntimeError("handshake handler has been discarded")

    def _complete(self, ciphers: _Ciphers | None) -> None:
        if ciphers is None:
            return
        if self._stage is not HandshakeStage.INIT:
            raise RuntimeError("invalid stage when completing the handshake")
        self._ciphers = ciphers
        self._stage = HandshakeStage.COMPLETED


class Session:
    """State of one noise session: first the handshake, then transport."""

    def __init__(
        self, initiator: bool = True, static_key: X25519PrivateKey | None = None
    ) -> None:
        self.initiator = initiator
        self._id = secrets.token_bytes(SESSION_ID_SIZE)
        self._handler: HandshakeHandler | TransportHandler = HandshakeHandler(
            initiator, static_key
        )
        self._can_upgrade = False

    @classmethod
    def _with_transport(
        cls, session_id: bytes, initiator: bool, handler: TransportHandler
    ) -> "Session":
        session = cls.__new__(cls)
        session.initiator = initiator
        session._id = session_id
        session._handler = handler
        session._can_upgrade = False
        return session

    @property
    def id(self) -> bytes:
        return self._id

    def can_upgrade(self) -> bool:
        """Whether the handshake has finished and transport mode is available."""
        return self._can_upgrade

    def upgrade(self) -> "Session":
        """Return a transport-mode session with the same identifier."""
        if not self._can_upgrade or not isinstance(self._handler, HandshakeHandler):
            raise RuntimeError("session is not ready to be upgraded")
        transport = self._handler.upgrade()
        return Session._with_transport(self._id, self.initiator, transport)

    def read(self, data: bytes) -> bytes:
        """Process bytes from the remote endpoint and return the plaintext."""
        result = self._handler.read(data)
        self._refresh()
        return result

    def write(self, data: bytes) -> bytes:
        """Process local bytes and return what is to be sent to the remote endpoint."""
        result = self._handler.write(data)
        self._refresh()
        return result

    def _refresh(self) -> None:
        if isinstance(self._handler, HandshakeHandler) and self._handler.can_upgrade():
            self._can_upgrade = True
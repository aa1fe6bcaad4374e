"""
Software passkey authenticator for tests.

Produces "none"-attestation registration responses and ES256 assertions
in the JSON shape browsers hand to the server.
"""

import hashlib
import json
import secrets
import struct
from typing import Any, Dict, Optional

import cbor2
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url

FLAG_UP = 0x01
FLAG_UV = 0x04
FLAG_AT = 0x40


class SoftAuthenticator:
    """One P-256 credential and its signature counter."""

    def __init__(
        self,
        rp_id: str = "localhost",
        origin: str = "http://localhost:3000",
        counter_step: int = 1,
    ):
        self.rp_id = rp_id
        self.origin = origin
        self.counter_step = counter_step
        self.sign_count = 0
        self.private_key = ec.generate_private_key(ec.SECP256R1())
        self.credential_id = secrets.token_bytes(32)
        self.user_handle: Optional[bytes] = None

    @property
    def credential_id_b64(self) -> str:
        return bytes_to_base64url(self.credential_id)

    def _cose_public_key(self) -> bytes:
        numbers = self.private_key.public_key().public_numbers()
        return cbor2.dumps({
            1: 2,
            3: -7,
            -1: 1,
            -2: numbers.x.to_bytes(32, "big"),
            -3: numbers.y.to_bytes(32, "big"),
        })

    def _client_data(self, kind: str, challenge: str, origin: Optional[str]) -> bytes:
        return json.dumps({
            "type": kind,
            "challenge": challenge,
            "origin": origin or self.origin,
            "crossOrigin": False,
        }).encode("utf-8")

    def _auth_data(self, rp_id: Optional[str], flags: int, sign_count: int) -> bytes:
        rp_id_hash = hashlib.sha256((rp_id or self.rp_id).encode("utf-8")).digest()
        return rp_id_hash + bytes([flags]) + struct.pack(">I", sign_count)

    def create(
        self,
        options: Dict[str, Any],
        origin: Optional[str] = None,
        rp_id: Optional[str] = None,
        user_verified: bool = True,
    ) -> Dict[str, Any]:
        """Answer creation options, like navigator.credentials.create()."""
        self.user_handle = base64url_to_bytes(options["user"]["id"])
        flags = FLAG_UP | FLAG_AT | (FLAG_UV if user_verified else 0)
        auth_data = (
            self._auth_data(rp_id, flags, self.sign_count)
            + bytes(16)
            + struct.pack(">H", len(self.credential_id))
            + self.credential_id
            + self._cose_public_key()
        )
        attestation = cbor2.dumps({"fmt": "none", "attStmt": {}, "authData": auth_data})
        client_data = self._client_data("webauthn.create", options["challenge"], origin)
        return {
            "id": self.credential_id_b64,
            "rawId": self.credential_id_b64,
            "type": "public-key",
            "response": {
                "clientDataJSON": bytes_to_base64url(client_data),
                "attestationObject": bytes_to_base64url(attestation),
                "transports": ["internal"],
            },
            "clientExtensionResults": {},
            "authenticatorAttachment": "platform",
        }

    def get(
        self,
        options: Dict[str, Any],
        origin: Optional[str] = None,
        rp_id: Optional[str] = None,
        sign_count: Optional[int] = None,
        user_handle: Optional[bytes] = None,
    ) -> Dict[str, Any]:
        """
        Answer request options, like navigator.credentials.get().

        The counter advances by ``counter_step`` unless ``sign_count`` pins
        the value presented.
        """
        if sign_count is None:
            self.sign_count += self.counter_step
            sign_count = self.sign_count
        auth_data = self._auth_data(rp_id, FLAG_UP | FLAG_UV, sign_count)
        client_data = self._client_data("webauthn.get", options["challenge"], origin)
        signature = self.private_key.sign(
            auth_data + hashlib.sha256(client_data).digest(), ec.ECDSA(hashes.SHA256())
        )
        handle = user_handle if user_handle is not None else self.user_handle
        return {
            "id": self.credential_id_b64,
            "rawId": self.credential_id_b64,
            "type": "public-key",
            "response": {
                "clientDataJSON": bytes_to_base64url(client_data),
                "authenticatorData": bytes_to_base64url(auth_data),
                "signature": bytes_to_base64url(signature),
                "userHandle": bytes_to_base64url(handle) if handle else None,
            },
            "clientExtensionResults": {},
            "authenticatorAttachment": "platform",
        }

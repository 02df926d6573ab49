"""
Secure Transport Factory - mutual-TLS HTTP client from stored key material.

build_client() validates that the private key and certificate form a pair
before touching the network, loads both into one ssl.SSLContext, and mounts
that context on a requests session. Server certificates are still verified
against the system trust store.
"""

import os
import ssl
import tempfile
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from requests.adapters import HTTPAdapter

from .exceptions import InvalidKeyMaterialError
from .schemas import KeyMaterial
from .utils.http import DEFAULT_USER_AGENT, StandardClient
from .utils.logging import get_logger

logger = get_logger(__name__)

_PUBLIC_FORMAT = (serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo)


class ClientCertAdapter(HTTPAdapter):
    """HTTPAdapter whose connection pools all use one preconfigured SSLContext."""

    def __init__(self, ssl_context: ssl.SSLContext, **kwargs):
        self.ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = self.ssl_context
        return super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, *args, **kwargs):
        kwargs["ssl_context"] = self.ssl_context
        return super().proxy_manager_for(*args, **kwargs)


class SecureClient(StandardClient):
    """
    HTTP client presenting the connector's client certificate on every handshake.

    Holds no per-request state, so one instance can serve concurrent calls.
    """

    def __init__(
        self,
        ssl_context: ssl.SSLContext,
        certificate_pem: str,
        timeout: Optional[float] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.ssl_context = ssl_context
        self.certificate_pem = certificate_pem
        super().__init__(timeout=timeout, user_agent=user_agent)

    def _build_adapter(self, **kwargs) -> HTTPAdapter:
        return ClientCertAdapter(self.ssl_context, **kwargs)

    @property
    def certificate(self) -> x509.Certificate:
        return x509.load_pem_x509_certificate(self.certificate_pem.encode())


def validate_key_pair(private_key_pem: str, certificate_pem: str) -> x509.Certificate:
    """
    Check that the PEM key and certificate parse and belong together.

    Raises:
        InvalidKeyMaterialError: either side is malformed or the public keys differ
    """
    if not private_key_pem or not certificate_pem:
        raise InvalidKeyMaterialError("private key and certificate are both required")

    try:
        private_key = serialization.load_pem_private_key(private_key_pem.encode(), password=None)
    except (ValueError, TypeError) as e:
        raise InvalidKeyMaterialError(f"malformed private key: {e}") from e

    try:
        certificate = x509.load_pem_x509_certificate(certificate_pem.encode())
    except ValueError as e:
        raise InvalidKeyMaterialError(f"malformed certificate: {e}") from e

    if private_key.public_key().public_bytes(*_PUBLIC_FORMAT) != certificate.public_key().public_bytes(*_PUBLIC_FORMAT):
        raise InvalidKeyMaterialError("certificate public key does not match private key")

    return certificate


class SecureTransportFactory:
    """Builds SecureClients for the management and certificate endpoints."""

    def __init__(
        self,
        ca_bundle: Optional[str] = None,
        timeout: Optional[float] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.ca_bundle = ca_bundle
        self.timeout = timeout
        self.user_agent = user_agent

    def build_ssl_context(self, key_material: KeyMaterial) -> ssl.SSLContext:
        """TLS client context verifying servers and presenting the client credential."""
        validate_key_pair(key_material.private_key, key_material.certificate)

        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
        if self.ca_bundle:
            context.load_verify_locations(cafile=self.ca_bundle)

        # load_cert_chain only reads from files; the temp dir is private and removed at once
        with tempfile.TemporaryDirectory(prefix="appconnect-") as tmp:
            cert_path = os.path.join(tmp, "client.crt")
            key_path = os.path.join(tmp, "client.key")
            with open(cert_path, "w") as f:
                f.write(key_material.certificate)
            fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "w") as f:
                f.write(key_material.private_key)
            try:
                context.load_cert_chain(certfile=cert_path, keyfile=key_path)
            except ssl.SSLError as e:
                raise InvalidKeyMaterialError(f"TLS rejected key material: {e}") from e

        return context

    def build_client(self, key_material: KeyMaterial) -> SecureClient:
        """
        Build a mutual-TLS client from ``key_material``.

        Raises:
            InvalidKeyMaterialError: before any network call, if the pair is unusable
        """
        context = self.build_ssl_context(key_material)
        logger.debug("Built secure client from stored key material")
        return SecureClient(
            context,
            certificate_pem=key_material.certificate,
            timeout=self.timeout,
            user_agent=self.user_agent,
        )


def build_client(key_material: KeyMaterial, ca_bundle: Optional[str] = None) -> SecureClient:
    """Build a SecureClient with default settings."""
    return SecureTransportFactory(ca_bundle=ca_bundle).build_client(key_material)

"""
Lifecycle Controller - owns one connector identity.

Drives enrollment, resume from persisted artifacts, renewal and revocation.
Every operation is fail-fast: the first failing step aborts it, and the
controller's in-memory identity is only replaced once all steps succeeded.

Operations mutate the single identity this controller owns, so enroll(),
renew() and revoke() must be serialized by the caller. The SecureClient
handed out may be shared freely between threads.
"""

from typing import Optional, Tuple

from pydantic import ValidationError

from .config import ConnectorSettings
from .enrollment import EnrollmentClient, decode_certificate, encode_csr
from .exceptions import (
    ArtifactNotFoundError,
    ConnectorError,
    DiscoveryError,
    InvalidKeyMaterialError,
    KeyGenerationError,
    MissingEndpointError,
    NoPersistedIdentityError,
    NotEnrolledError,
    RevocationError,
    SigningError,
    StorageError,
)
from .identity.csr_generator import CSRGenerator, parse_key_algorithm
from .identity.dn import DistinguishedName, from_x509_name, parse_subject
from .schemas import ConnectorState, EnrollmentInfo, KeyMaterial, RuntimeInfo
from .storage import (
    CERTIFICATE,
    CSR,
    ENROLLMENT_INFO,
    PRIVATE_KEY,
    RUNTIME_INFO,
    FileSystemStore,
    KeyMaterialStore,
)
from .transport import SecureClient, SecureTransportFactory
from .utils.http import body_text
from .utils.logging import get_logger

logger = get_logger(__name__)


class LifecycleController:
    """
    Enrollment and certificate lifecycle for one application identity.

    Usage:
        controller = LifecycleController(FileSystemStore("/var/lib/orders"))
        controller.enroll(configuration_url)   # first run
        controller.resume()                     # later runs
        controller.renew()
    """

    def __init__(
        self,
        store: KeyMaterialStore,
        enrollment_client: Optional[EnrollmentClient] = None,
        transport_factory: Optional[SecureTransportFactory] = None,
        csr_generator: Optional[CSRGenerator] = None,
        key_algorithm: Optional[str] = None,
    ):
        self.store = store
        self.enrollment_client = enrollment_client or EnrollmentClient()
        self.transport_factory = transport_factory or SecureTransportFactory()
        self.csr_generator = csr_generator or CSRGenerator()
        # Explicit algorithm beats the server's key-algorithm hint
        self.key_algorithm = key_algorithm

        self.enrollment_info: Optional[EnrollmentInfo] = None
        self.runtime_info: Optional[RuntimeInfo] = None
        self.key_material: Optional[KeyMaterial] = None
        self._secure_client: Optional[SecureClient] = None
        self._revoked = False

    @classmethod
    def from_settings(
        cls,
        settings: ConnectorSettings,
        store: Optional[KeyMaterialStore] = None,
    ) -> "LifecycleController":
        """Build a controller from AppConnect settings (filesystem store by default)."""
        return cls(
            store=store or FileSystemStore(settings.STORE_DIR),
            enrollment_client=EnrollmentClient(timeout=settings.HTTP_TIMEOUT, user_agent=settings.USER_AGENT),
            transport_factory=SecureTransportFactory(
                ca_bundle=settings.CA_BUNDLE,
                timeout=settings.HTTP_TIMEOUT,
                user_agent=settings.USER_AGENT,
            ),
            key_algorithm=settings.KEY_ALGORITHM,
        )

    # ==========================================================================
    # State
    # ==========================================================================

    @property
    def state(self) -> ConnectorState:
        if self._revoked:
            return ConnectorState.REVOKED
        if self._is_enrolled():
            return ConnectorState.ENROLLED
        if self.key_material is not None and self.key_material.csr and not self.key_material.certificate:
            return ConnectorState.CSR_ISSUED
        return ConnectorState.UNENROLLED

    @property
    def application(self) -> Optional[str]:
        if self.runtime_info is None:
            return None
        return self.runtime_info.client_identity.application or None

    @property
    def secure_client(self) -> SecureClient:
        """The authenticated client; raises NotEnrolledError before enrollment."""
        if self._secure_client is None:
            raise NotEnrolledError("use secure client")
        return self._secure_client

    def _is_enrolled(self) -> bool:
        return (
            self._secure_client is not None
            and self.runtime_info is not None
            and self.key_material is not None
            and self.key_material.has_certificate
        )

    def _require_enrolled(self, operation: str) -> None:
        # A revoked identity still holds its client; the server decides what it may do
        if not self._is_enrolled():
            raise NotEnrolledError(operation)

    # ==========================================================================
    # Operations
    # ==========================================================================

    def enroll(self, configuration_url: str) -> RuntimeInfo:
        """
        Obtain a client certificate and runtime info from ``configuration_url``.

        Steps: discover, parse subject, generate key + CSR, submit CSR, build
        the secure client, persist enrollment info and key material, fetch and
        persist runtime info.
        """
        if not configuration_url:
            raise MissingEndpointError("configuration URL", "enroll")

        enrollment_info, raw_enrollment_info = self.enrollment_client.fetch_enrollment_info(configuration_url)
        if not enrollment_info.csr_url:
            raise MissingEndpointError("CSR URL", "enroll")
        if not enrollment_info.api.info_url:
            raise MissingEndpointError("info URL", "enroll")

        dn = parse_subject(enrollment_info.certificate.subject)
        csr_pem, key_pem = self.csr_generator.generate(
            dn, key_algorithm=self._resolve_key_algorithm(enrollment_info)
        )
        certificate_pem = self.enrollment_client.submit_csr(enrollment_info.csr_url, csr_pem)
        key_material = KeyMaterial(private_key=key_pem, csr=csr_pem, certificate=certificate_pem)

        secure_client = self.transport_factory.build_client(key_material)

        self._write(ENROLLMENT_INFO, raw_enrollment_info)
        self._persist_key_material(key_material)

        runtime_info, raw_runtime_info = self._fetch_runtime_info(secure_client, enrollment_info.api.info_url)
        self._write(RUNTIME_INFO, raw_runtime_info)

        self._commit(enrollment_info, runtime_info, key_material, secure_client)
        logger.info(f"Enrolled application {self.application or dn.common_name}")
        return runtime_info

    def resume(self) -> None:
        """Restore a persisted identity without any network call."""
        raw_enrollment_info = self._read_identity(ENROLLMENT_INFO)
        raw_runtime_info = self._read_identity(RUNTIME_INFO)
        key_material = KeyMaterial(
            private_key=self._read_pem(PRIVATE_KEY),
            csr=self._read_pem(CSR),
            certificate=self._read_pem(CERTIFICATE),
        )

        try:
            enrollment_info = EnrollmentInfo.model_validate_json(raw_enrollment_info)
        except ValidationError as e:
            raise StorageError("persisted enrollment info is corrupt", name=ENROLLMENT_INFO) from e
        try:
            runtime_info = RuntimeInfo.model_validate_json(raw_runtime_info)
        except ValidationError as e:
            raise StorageError("persisted runtime info is corrupt", name=RUNTIME_INFO) from e

        secure_client = self.transport_factory.build_client(key_material)
        self._commit(enrollment_info, runtime_info, key_material, secure_client)
        logger.info(f"Resumed identity for {self.application or 'application'}")

    def renew(self) -> KeyMaterial:
        """
        Replace the client certificate using a brand-new key pair.

        The renewal request is authorized by the current certificate. The old
        certificate is not invalidated here.
        """
        self._require_enrolled("renew certificate")
        renew_url = self.runtime_info.urls.renew_cert_url
        if not renew_url:
            raise MissingEndpointError("renew certificate URL", "renew certificate")

        dn = self._current_subject()
        csr_pem, key_pem = self.csr_generator.generate(
            dn, key_algorithm=self._resolve_key_algorithm(self.enrollment_info)
        )

        response = self._secure_client.post(renew_url, json=encode_csr(csr_pem), operation="renew")
        if response.status_code not in (200, 201):
            raise SigningError(
                "renewal rejected",
                url=renew_url,
                status_code=response.status_code,
                body=body_text(response),
            )
        certificate_pem = decode_certificate(response.content, url=renew_url, operation="renew")

        key_material = KeyMaterial(private_key=key_pem, csr=csr_pem, certificate=certificate_pem)
        secure_client = self.transport_factory.build_client(key_material)
        try:
            self._persist_key_material(key_material)
        except ConnectorError:
            secure_client.close()
            self._restore_key_material(self.key_material)
            raise

        self._commit(self.enrollment_info, self.runtime_info, key_material, secure_client)
        logger.info("Renewed client certificate")
        return key_material

    def revoke(self) -> None:
        """
        Ask the server to revoke the current certificate.

        Persisted artifacts are left in place; erasing them is up to the caller.
        """
        self._require_enrolled("revoke certificate")
        revoke_url = self.runtime_info.urls.revoke_cert_url
        if not revoke_url:
            raise MissingEndpointError("revoke certificate URL", "revoke certificate")

        response = self._secure_client.post(revoke_url, operation="revoke")
        if not 200 <= response.status_code < 300:
            raise RevocationError(revoke_url, response.status_code, body=body_text(response))

        self._revoked = True
        logger.warning("Client certificate revoked; local key material is now stale")

    def close(self) -> None:
        if self._secure_client is not None:
            self._secure_client.close()

    # ==========================================================================
    # Internals
    # ==========================================================================

    def _commit(
        self,
        enrollment_info: EnrollmentInfo,
        runtime_info: RuntimeInfo,
        key_material: KeyMaterial,
        secure_client: SecureClient,
    ) -> None:
        previous = self._secure_client
        self.enrollment_info = enrollment_info
        self.runtime_info = runtime_info
        self.key_material = key_material
        self._secure_client = secure_client
        self._revoked = False
        if previous is not None and previous is not secure_client:
            previous.close()

    def _resolve_key_algorithm(self, enrollment_info: Optional[EnrollmentInfo]) -> Optional[str]:
        if self.key_algorithm:
            return self.key_algorithm
        hint = enrollment_info.certificate.key_algorithm if enrollment_info else ""
        if not hint:
            return None
        try:
            parse_key_algorithm(hint)
        except KeyGenerationError:
            logger.warning(f"Ignoring unsupported key-algorithm hint '{hint}'")
            return None
        return hint

    def _current_subject(self) -> DistinguishedName:
        dn = parse_subject(self.enrollment_info.certificate.subject if self.enrollment_info else "")
        if dn.common_name:
            return dn
        # Fall back to the subject the server actually signed
        return from_x509_name(self._secure_client.certificate.subject)

    def _fetch_runtime_info(self, client: SecureClient, info_url: str) -> Tuple[RuntimeInfo, bytes]:
        response = client.get(info_url, operation="info")
        if response.status_code != 200:
            raise DiscoveryError(
                "received non OK status code from info URL",
                url=info_url,
                status_code=response.status_code,
                body=body_text(response),
            )
        try:
            runtime_info = RuntimeInfo.model_validate_json(response.content)
        except ValidationError as e:
            raise DiscoveryError("malformed runtime info", url=info_url, body=body_text(response)) from e
        return runtime_info, response.content

    @staticmethod
    def _key_material_artifacts(key_material: KeyMaterial) -> Tuple[Tuple[str, bytes], ...]:
        return (
            (PRIVATE_KEY, key_material.private_key.encode()),
            (CSR, key_material.csr.encode()),
            (CERTIFICATE, key_material.certificate.encode()),
        )

    def _persist_key_material(self, key_material: KeyMaterial) -> None:
        for name, data in self._key_material_artifacts(key_material):
            self._write(name, data)

    def _restore_key_material(self, key_material: KeyMaterial) -> None:
        """Best-effort rewrite of the previous key material after a failed persist."""
        for name, data in self._key_material_artifacts(key_material):
            try:
                self._write(name, data)
            except ConnectorError as e:
                logger.error(f"Could not restore {name} after failed renewal: {e}")

    def _write(self, name: str, data: bytes) -> None:
        try:
            self.store.write(name, data)
        except ConnectorError:
            raise
        except Exception as e:
            raise StorageError(str(e), name=name) from e

    def _read_pem(self, name: str) -> str:
        data = self._read_identity(name)
        try:
            return data.decode("ascii")
        except UnicodeDecodeError as e:
            raise InvalidKeyMaterialError(f"'{name}' is not PEM text") from e

    def _read_identity(self, name: str) -> bytes:
        try:
            return self.store.read(name)
        except ArtifactNotFoundError as e:
            raise NoPersistedIdentityError(name) from e
        except ConnectorError:
            raise
        except Exception as e:
            raise StorageError(str(e), name=name) from e

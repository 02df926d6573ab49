"""
AppConnect - enroll an application into a cluster trust domain.

Obtains a signed mutual-TLS client certificate from an enrollment service,
persists the key material and uses it for authenticated management calls.

Example:
    >>> from appconnect import LifecycleController, FileSystemStore
    >>> controller = LifecycleController(FileSystemStore("/var/lib/orders"))
    >>> controller.enroll("https://connector.example.com/v1/applications/signingRequests/info?token=...")
    >>> controller.renew()
"""

__version__ = "1.0.0"

from .controller import LifecycleController
from .enrollment import EnrollmentClient
from .exceptions import (
    ArtifactNotFoundError,
    CertificateDecodeError,
    ConnectorError,
    DiscoveryError,
    InvalidKeyMaterialError,
    KeyGenerationError,
    MissingEndpointError,
    NoPersistedIdentityError,
    NotEnrolledError,
    RegistrationError,
    RequestEncodingError,
    RevocationError,
    SigningError,
    StorageError,
    TransportError,
)
from .identity import CSRGenerator, DistinguishedName, parse_subject
from .management import ManagementClient
from .schemas import ConnectorState, EnrollmentInfo, KeyMaterial, RuntimeInfo
from .storage import FileSystemStore, InMemoryStore, KeyMaterialStore
from .transport import SecureClient, SecureTransportFactory

__all__ = [
    "__version__",
    "LifecycleController",
    "EnrollmentClient",
    "ManagementClient",
    "SecureClient",
    "SecureTransportFactory",
    "CSRGenerator",
    "DistinguishedName",
    "parse_subject",
    "ConnectorState",
    "EnrollmentInfo",
    "KeyMaterial",
    "RuntimeInfo",
    "FileSystemStore",
    "InMemoryStore",
    "KeyMaterialStore",
    "ConnectorError",
    "ArtifactNotFoundError",
    "CertificateDecodeError",
    "DiscoveryError",
    "InvalidKeyMaterialError",
    "KeyGenerationError",
    "MissingEndpointError",
    "NoPersistedIdentityError",
    "NotEnrolledError",
    "RegistrationError",
    "RequestEncodingError",
    "RevocationError",
    "SigningError",
    "StorageError",
    "TransportError",
]

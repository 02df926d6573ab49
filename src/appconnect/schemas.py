"""
AppConnect schemas for enrollment wire formats and local identity state.

Wire models are Pydantic models keyed by the JSON field names the enrollment
service uses; local state (KeyMaterial) is a plain dataclass.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ==============================================================================
# Enums
# ==============================================================================


class ConnectorState(str, Enum):
    """Lifecycle state, inferred from which artifacts the controller holds."""

    UNENROLLED = "unenrolled"
    CSR_ISSUED = "csr_issued"
    ENROLLED = "enrolled"
    REVOKED = "revoked"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


# ==============================================================================
# Enrollment (configuration URL) Schemas
# ==============================================================================


class EnrollmentAPI(_WireModel):
    """Auxiliary URLs announced by the configuration endpoint."""

    metadata_url: str = Field(default="", alias="metadataUrl")
    events_url: str = Field(default="", alias="eventsUrl")
    events_info_url: str = Field(default="", alias="eventsInfoUrl")
    info_url: str = Field(default="", alias="infoUrl")
    certificates_url: str = Field(default="", alias="certificatesUrl")


class CertificateTemplate(_WireModel):
    """Subject and key hints the signed certificate must carry."""

    subject: str = ""
    extensions: str = ""
    key_algorithm: str = Field(default="", alias="key-algorithm")


class EnrollmentInfo(_WireModel):
    """Response of the configuration URL."""

    csr_url: str = Field(default="", alias="csrUrl")
    api: EnrollmentAPI = Field(default_factory=EnrollmentAPI)
    certificate: CertificateTemplate = Field(default_factory=CertificateTemplate)


# ==============================================================================
# Runtime (authenticated info endpoint) Schemas
# ==============================================================================


class ClientIdentity(_WireModel):
    application: str = ""


class RuntimeURLs(_WireModel):
    metadata_url: str = Field(default="", alias="metadataUrl")
    events_url: str = Field(default="", alias="eventsUrl")
    events_info_url: str = Field(default="", alias="eventsInfoUrl")
    renew_cert_url: str = Field(default="", alias="renewCertUrl")
    revoke_cert_url: str = Field(default="", alias="revokeCertUrl")


class RuntimeInfo(_WireModel):
    """Response of the info endpoint, fetched over mutual TLS."""

    client_identity: ClientIdentity = Field(default_factory=ClientIdentity, alias="clientIdentity")
    urls: RuntimeURLs = Field(default_factory=RuntimeURLs)


# ==============================================================================
# Signing Schemas
# ==============================================================================


class CSRRequest(_WireModel):
    """Body posted to the signing and renewal endpoints."""

    csr: str = Field(..., description="Base64 of the PEM-encoded CSR")


class CertificateResponse(_WireModel):
    """
    Body returned by the signing and renewal endpoints.

    Keys are matched case-insensitively, so ``clientCrt`` and ``clientCRT``
    both populate ``client_crt``.
    """

    crt: str = ""
    client_crt: str = Field(default="", alias="clientcrt")
    ca_crt: str = Field(default="", alias="cacrt")

    @model_validator(mode="before")
    @classmethod
    def fold_key_case(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {str(k).lower(): v for k, v in data.items()}
        return data


# ==============================================================================
# Management Schemas
# ==============================================================================


class EventInfo(_WireModel):
    name: str
    version: str = ""


class SubscribedEvents(_WireModel):
    events_info: List[EventInfo] = Field(default_factory=list, alias="eventsInfo")


# ==============================================================================
# Local identity
# ==============================================================================


@dataclass
class KeyMaterial:
    """PEM-encoded private key, CSR and signed certificate of one identity."""

    private_key: str = ""
    csr: str = ""
    certificate: str = ""

    @property
    def has_certificate(self) -> bool:
        return bool(self.certificate)

    def __repr__(self) -> str:
        return (
            f"KeyMaterial(private_key={'<set>' if self.private_key else '<empty>'}, "
            f"csr={'<set>' if self.csr else '<empty>'}, "
            f"certificate={'<set>' if self.certificate else '<empty>'})"
        )

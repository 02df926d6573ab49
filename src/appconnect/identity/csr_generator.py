"""
CSR Generator - Local Key Generation and CSR Creation

Generates a fresh key pair for every request and signs a PKCS#10 CSR over the
enrollment subject. Private keys NEVER leave the connector; only the CSR is
sent to the enrollment service.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from ..exceptions import KeyGenerationError, RequestEncodingError
from ..utils.logging import get_logger
from .dn import DistinguishedName

logger = get_logger(__name__)

DEFAULT_KEY_ALGORITHM = "rsa2048"

EC_CURVES = {
    256: ec.SECP256R1,
    384: ec.SECP384R1,
    521: ec.SECP521R1,
}

_ALGORITHM_PATTERN = re.compile(r"^(rsa|ecdsa|ec)[-_]?(?:p)?[-_]?(\d+)?$")

# DistinguishedName attribute -> x509 OID, in subject order
_SUBJECT_OIDS = (
    ("country", NameOID.COUNTRY_NAME),
    ("province", NameOID.STATE_OR_PROVINCE_NAME),
    ("locality", NameOID.LOCALITY_NAME),
    ("organization", NameOID.ORGANIZATION_NAME),
    ("organizational_unit", NameOID.ORGANIZATIONAL_UNIT_NAME),
    ("common_name", NameOID.COMMON_NAME),
)


@dataclass(frozen=True)
class KeySpec:
    """Parsed key algorithm."""
    key_type: str  # "RSA" or "EC"
    key_size: int


def parse_key_algorithm(value: Optional[str]) -> KeySpec:
    """
    Parse a key algorithm string such as ``rsa2048``, ``rsa-4096``, ``ec256``
    or ``ecdsa-p384``. Empty input selects the default (RSA 2048).
    """
    text = (value or DEFAULT_KEY_ALGORITHM).strip().lower()
    match = _ALGORITHM_PATTERN.match(text)
    if not match:
        raise KeyGenerationError("unsupported key algorithm", key_algorithm=value)

    family, size = match.group(1), match.group(2)
    if family == "rsa":
        key_size = int(size) if size else 2048
        if key_size < 2048:
            raise KeyGenerationError("RSA keys must be at least 2048 bits", key_algorithm=value)
        return KeySpec("RSA", key_size)

    key_size = int(size) if size else 256
    if key_size not in EC_CURVES:
        raise KeyGenerationError("unsupported EC curve", key_algorithm=value)
    return KeySpec("EC", key_size)


class CSRGenerator:
    """
    Generate a key pair and CSR in one step.

    A new key is created on every call to generate(); nothing is cached, so a
    failed attempt never leaks key material into the next one.
    """

    def __init__(self, key_algorithm: Optional[str] = None):
        self.key_spec = parse_key_algorithm(key_algorithm)

    def generate_key(self, key_spec: Optional[KeySpec] = None):
        """Generate a new private key for ``key_spec`` (default: the configured spec)."""
        spec = key_spec or self.key_spec
        try:
            if spec.key_type == "RSA":
                return rsa.generate_private_key(public_exponent=65537, key_size=spec.key_size)
            return ec.generate_private_key(EC_CURVES[spec.key_size]())
        except (ValueError, TypeError) as e:
            raise KeyGenerationError(str(e), key_algorithm=f"{spec.key_type}{spec.key_size}") from e

    def build_subject(self, dn: DistinguishedName) -> x509.Name:
        """Build the x509 subject, omitting every unset field."""
        if not dn.common_name:
            raise RequestEncodingError("common name is required", field="CN")

        attrs = []
        for attr, oid in _SUBJECT_OIDS:
            value = getattr(dn, attr)
            if not value:
                continue
            try:
                attrs.append(x509.NameAttribute(oid, value))
            except ValueError as e:
                # e.g. country names must be exactly two characters
                raise RequestEncodingError(str(e), field=attr) from e
        return x509.Name(attrs)

    def generate(
        self,
        dn: DistinguishedName,
        key_algorithm: Optional[str] = None,
    ) -> Tuple[str, str]:
        """
        Generate a new key pair and a CSR for ``dn``.

        Args:
            dn: Subject of the requested certificate
            key_algorithm: Overrides the configured algorithm for this call

        Returns:
            (csr_pem, private_key_pem)
        """
        subject = self.build_subject(dn)
        spec = parse_key_algorithm(key_algorithm) if key_algorithm else self.key_spec
        private_key = self.generate_key(spec)

        try:
            csr = (
                x509.CertificateSigningRequestBuilder()
                .subject_name(subject)
                .sign(private_key, hashes.SHA256())
            )
            csr_pem = csr.public_bytes(serialization.Encoding.PEM).decode()
            key_pem = private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            ).decode()
        except (ValueError, TypeError) as e:
            raise RequestEncodingError(str(e)) from e

        logger.info(f"Generated {spec.key_type} {spec.key_size}-bit key and CSR for {dn.common_name}")
        return csr_pem, key_pem


def generate(dn: DistinguishedName, key_algorithm: Optional[str] = None) -> Tuple[str, str]:
    """Generate (csr_pem, private_key_pem) for ``dn`` with a fresh key."""
    return CSRGenerator(key_algorithm).generate(dn)

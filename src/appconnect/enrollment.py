"""
Enrollment Client - unauthenticated half of the enrollment handshake.

1. GET the configuration URL -> EnrollmentInfo (CSR URL, subject, API URLs)
2. POST {"csr": base64(csr_pem)} to the CSR URL -> base64 client certificate

This client runs before any client certificate exists, so it never presents
one. Nothing here retries; the caller decides whether to re-run enrollment.
"""

import base64
import binascii
from typing import Optional, Tuple

from pydantic import ValidationError

from .exceptions import (
    CertificateDecodeError,
    DiscoveryError,
    MissingEndpointError,
    SigningError,
    TransportError,
)
from .schemas import CertificateResponse, CSRRequest, EnrollmentInfo
from .utils.http import StandardClient, body_text
from .utils.logging import get_logger

logger = get_logger(__name__)


def encode_csr(csr_pem: str) -> dict:
    """JSON body for the signing and renewal endpoints."""
    encoded = base64.b64encode(csr_pem.encode()).decode("ascii")
    return CSRRequest(csr=encoded).model_dump()


def decode_certificate(payload: bytes, url: Optional[str] = None, operation: str = "sign") -> str:
    """
    Extract the client certificate PEM from a signing/renewal response body.

    Raises:
        SigningError: body is not a JSON object or carries no client certificate
        CertificateDecodeError: the certificate field is not valid base64
    """
    try:
        response = CertificateResponse.model_validate_json(payload or b"")
    except ValidationError as e:
        raise SigningError(f"malformed {operation} response: {e.error_count()} error(s)", url=url) from e

    if not response.client_crt:
        raise SigningError(f"{operation} response has no client certificate", url=url)

    # Line-wrapped base64 is accepted; any other non-alphabet byte is not
    encoded = response.client_crt.replace("\r", "").replace("\n", "")
    try:
        decoded = base64.b64decode(encoded, validate=True)
        return decoded.decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise CertificateDecodeError(str(e), url=url) from e


class EnrollmentClient(StandardClient):
    """HTTP client for the configuration and CSR signing endpoints."""

    def fetch_enrollment_info(self, configuration_url: str) -> Tuple[EnrollmentInfo, bytes]:
        """
        Fetch enrollment metadata.

        Returns:
            The parsed EnrollmentInfo and the raw response body (persisted as-is)

        Raises:
            MissingEndpointError: configuration_url is empty
            DiscoveryError: transport failure, non-200 status or malformed JSON
        """
        if not configuration_url:
            raise MissingEndpointError("configuration URL", "fetch enrollment info")

        try:
            response = self.get(configuration_url, operation="discovery")
        except TransportError as e:
            raise DiscoveryError(e.message, url=configuration_url) from e

        if response.status_code != 200:
            raise DiscoveryError(
                "received non OK status code from configuration URL",
                url=configuration_url,
                status_code=response.status_code,
                body=body_text(response),
            )

        try:
            info = EnrollmentInfo.model_validate_json(response.content)
        except ValidationError as e:
            raise DiscoveryError(
                "malformed enrollment info",
                url=configuration_url,
                status_code=response.status_code,
                body=body_text(response),
            ) from e

        logger.info(f"Fetched enrollment info from {configuration_url}")
        return info, response.content

    def submit_csr(self, csr_url: str, csr_pem: str) -> str:
        """
        Submit a CSR for signing.

        Returns:
            The signed client certificate as PEM text, exactly as decoded

        Raises:
            MissingEndpointError: csr_url is empty
            TransportError: network failure
            SigningError: non-200 status or malformed response
            CertificateDecodeError: certificate is not valid base64
        """
        if not csr_url:
            raise MissingEndpointError("CSR URL", "submit CSR")

        response = self.post(csr_url, json=encode_csr(csr_pem), operation="sign")

        if response.status_code != 200:
            raise SigningError(
                "received non OK status code from CSR URL",
                url=csr_url,
                status_code=response.status_code,
                body=body_text(response),
            )

        certificate = decode_certificate(response.content, url=csr_url)
        logger.info("Received signed client certificate")
        return certificate

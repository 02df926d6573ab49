"""
AppConnect Exception Hierarchy

All errors raised by the connector derive from ConnectorError and carry:
- code: machine-readable error code (AC_<CATEGORY>_<SPECIFIC>)
- message: human-readable description
- details: structured context (operation, URL, artifact name)

Security:
- NEVER put private keys, CSRs or certificates into messages or details
"""

from typing import Any, Dict, Optional


class ConnectorError(Exception):
    """Base exception for all AppConnect errors."""

    def __init__(
        self,
        message: str,
        code: str = "AC_INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Enrollment Errors
# =============================================================================


class DiscoveryError(ConnectorError):
    """Raised when enrollment or runtime info cannot be fetched."""

    def __init__(
        self,
        reason: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        details: Dict[str, Any] = {"operation": "discovery"}
        if url:
            details["url"] = url
        if status_code is not None:
            details["status_code"] = status_code
        if body is not None:
            details["body"] = body
        super().__init__(
            message=f"Discovery failed: {reason}",
            code="AC_DISCOVERY_FAILED",
            details=details,
        )
        self.status_code = status_code
        self.body = body


class SigningError(ConnectorError):
    """Raised when the signing (or renewal) endpoint rejects the CSR."""

    def __init__(
        self,
        reason: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        details: Dict[str, Any] = {"operation": "sign"}
        if url:
            details["url"] = url
        if status_code is not None:
            details["status_code"] = status_code
        if body is not None:
            details["body"] = body
        super().__init__(
            message=f"Certificate signing failed: {reason}",
            code="AC_SIGNING_FAILED",
            details=details,
        )
        self.status_code = status_code


class CertificateDecodeError(ConnectorError):
    """Raised when the returned certificate payload is not valid base64."""

    def __init__(self, reason: str, url: Optional[str] = None):
        super().__init__(
            message=f"Certificate decode failed: {reason}",
            code="AC_CERT_DECODE_FAILED",
            details={"url": url} if url else {},
        )


# =============================================================================
# Key Material Errors
# =============================================================================


class KeyGenerationError(ConnectorError):
    """Raised when key pair generation fails."""

    def __init__(self, reason: str, key_algorithm: Optional[str] = None):
        super().__init__(
            message=f"Key generation failed: {reason}",
            code="AC_KEYGEN_FAILED",
            details={"key_algorithm": key_algorithm} if key_algorithm else {},
        )


class RequestEncodingError(ConnectorError):
    """Raised when the certificate signing request cannot be built."""

    def __init__(self, reason: str, field: Optional[str] = None):
        super().__init__(
            message=f"CSR encoding failed: {reason}",
            code="AC_CSR_ENCODING_FAILED",
            details={"field": field} if field else {},
        )


class InvalidKeyMaterialError(ConnectorError):
    """Raised when key and certificate are malformed or do not match."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Invalid key material: {reason}",
            code="AC_INVALID_KEY_MATERIAL",
        )


# =============================================================================
# Lifecycle Errors
# =============================================================================


class MissingEndpointError(ConnectorError):
    """Raised when an operation needs a URL that is absent or empty."""

    def __init__(self, endpoint: str, operation: str):
        super().__init__(
            message=f"{endpoint} is missing, cannot {operation}",
            code="AC_MISSING_ENDPOINT",
            details={"endpoint": endpoint, "operation": operation},
        )
        self.endpoint = endpoint


class NoPersistedIdentityError(ConnectorError):
    """Raised when resume() finds a required artifact missing."""

    def __init__(self, artifact: str):
        super().__init__(
            message=f"No persisted identity: '{artifact}' not found",
            code="AC_NO_PERSISTED_IDENTITY",
            details={"artifact": artifact},
        )
        self.artifact = artifact


class NotEnrolledError(ConnectorError):
    """Raised when an operation requires an enrolled identity."""

    def __init__(self, operation: str):
        super().__init__(
            message=f"Cannot {operation}: connector is not enrolled",
            code="AC_NOT_ENROLLED",
            details={"operation": operation},
        )


class RevocationError(ConnectorError):
    """Raised when the revocation endpoint answers with a non-2xx status."""

    def __init__(self, url: str, status_code: int, body: Optional[str] = None):
        details: Dict[str, Any] = {"url": url, "status_code": status_code}
        if body:
            details["body"] = body
        super().__init__(
            message=f"Revocation rejected with status {status_code}",
            code="AC_REVOCATION_FAILED",
            details=details,
        )
        self.status_code = status_code


class RegistrationError(ConnectorError):
    """Raised when a management API call (service/event) fails."""

    def __init__(
        self,
        operation: str,
        url: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        details: Dict[str, Any] = {"operation": operation, "url": url}
        if status_code is not None:
            details["status_code"] = status_code
        if body:
            details["body"] = body
        super().__init__(
            message=f"Failed to {operation}",
            code="AC_REGISTRATION_FAILED",
            details=details,
        )
        self.status_code = status_code


# =============================================================================
# Storage & Transport Errors
# =============================================================================


class StorageError(ConnectorError):
    """Raised when the key-material store fails to read or write."""

    def __init__(self, reason: str, name: Optional[str] = None, code: str = "AC_STORAGE_FAILED"):
        super().__init__(
            message=f"Storage failure: {reason}",
            code=code,
            details={"artifact": name} if name else {},
        )
        self.name = name


class ArtifactNotFoundError(StorageError):
    """Raised by a store when the named artifact does not exist."""

    def __init__(self, name: str):
        super().__init__(f"'{name}' does not exist", name=name, code="AC_ARTIFACT_NOT_FOUND")


class TransportError(ConnectorError):
    """Raised on network or TLS handshake failures."""

    def __init__(self, reason: str, url: Optional[str] = None, operation: Optional[str] = None):
        details: Dict[str, Any] = {}
        if url:
            details["url"] = url
        if operation:
            details["operation"] = operation
        super().__init__(
            message=f"Transport failure: {reason}",
            code="AC_TRANSPORT_FAILED",
            details=details,
        )

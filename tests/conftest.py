"""
Pytest configuration and fixtures.

Puts src/ on the import path and provides a throwaway CA plus a fake
enrollment server that signs CSRs on the fly.
"""

import base64
import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add src directory to Python path
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from cryptography import x509  # noqa: E402
from cryptography.hazmat.primitives import hashes, serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import ec  # noqa: E402
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID  # noqa: E402

SUBJECT = "O=Organization,OU=OrgUnit,L=Waldorf,ST=Waldorf,C=DE,CN=testApp"

CONFIG_URL = "https://connector.test/v1/applications/signingRequests/info?token=abc"
CSR_URL = "https://connector.test/v1/applications/certificates?token=abc"
INFO_URL = "https://gateway.test/v1/applications/management/info"
RENEW_URL = "https://gateway.test/v1/applications/certificates/renewals"
REVOKE_URL = "https://gateway.test/v1/applications/certificates/revocations"
METADATA_URL = "https://gateway.test/testApp/v1/metadata/services"
EVENTS_URL = "https://gateway.test/testApp/v1/events"
EVENTS_INFO_URL = "https://gateway.test/testApp/v1/events/subscribed"


def make_response(status_code=200, payload=None, content=None):
    """MagicMock standing in for requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    if content is None:
        content = json.dumps(payload).encode() if payload is not None else b""
    response.content = content
    response.text = content.decode("utf-8", errors="replace")
    response.json.side_effect = lambda: json.loads(content)
    return response


class FakeCA:
    """Minimal CA that signs CSRs for client auth."""

    def __init__(self):
        self.key = ec.generate_private_key(ec.SECP256R1())
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "Test Cluster CA")])
        now = datetime.now(timezone.utc)
        self.certificate = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(self.key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(minutes=5))
            .not_valid_after(now + timedelta(days=30))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .sign(self.key, hashes.SHA256())
        )

    def sign(self, csr_pem: str) -> str:
        csr = x509.load_pem_x509_csr(csr_pem.encode())
        now = datetime.now(timezone.utc)
        certificate = (
            x509.CertificateBuilder()
            .subject_name(csr.subject)
            .issuer_name(self.certificate.subject)
            .public_key(csr.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(minutes=5))
            .not_valid_after(now + timedelta(days=7))
            .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CLIENT_AUTH]), critical=False)
            .sign(self.key, hashes.SHA256())
        )
        return certificate.public_bytes(serialization.Encoding.PEM).decode()

    def sign_request_body(self, body: dict) -> str:
        """Sign the CSR carried in a {"csr": base64} body; returns the PEM certificate."""
        return self.sign(base64.b64decode(body["csr"]).decode())


@pytest.fixture(scope="session")
def ca():
    return FakeCA()


@pytest.fixture
def enrollment_info_payload():
    return {
        "csrUrl": CSR_URL,
        "api": {
            "metadataUrl": METADATA_URL,
            "eventsUrl": EVENTS_URL,
            "eventsInfoUrl": EVENTS_INFO_URL,
            "infoUrl": INFO_URL,
            "certificatesUrl": "https://gateway.test/v1/applications/certificates",
        },
        "certificate": {
            "subject": SUBJECT,
            "extensions": "",
            "key-algorithm": "rsa2048",
        },
    }


@pytest.fixture
def runtime_info_payload():
    return {
        "clientIdentity": {"application": "testApp"},
        "urls": {
            "metadataUrl": METADATA_URL,
            "eventsUrl": EVENTS_URL,
            "eventsInfoUrl": EVENTS_INFO_URL,
            "renewCertUrl": RENEW_URL,
            "revokeCertUrl": REVOKE_URL,
        },
    }


class FakeConnectorServer:
    """
    Routes patched requests.Session.request calls by (method, url).

    Records every call; individual routes can be overridden per test.
    """

    def __init__(self, ca, enrollment_info_payload, runtime_info_payload):
        self.ca = ca
        self.calls = []
        self.issued = []
        self.routes = {
            ("GET", CONFIG_URL): lambda kwargs: make_response(200, enrollment_info_payload),
            ("POST", CSR_URL): self._sign,
            ("GET", INFO_URL): lambda kwargs: make_response(200, runtime_info_payload),
            ("POST", RENEW_URL): self._renew,
            ("POST", REVOKE_URL): lambda kwargs: make_response(201),
        }

    def _issue(self, kwargs):
        certificate = self.ca.sign_request_body(kwargs["json"])
        self.issued.append(certificate)
        return base64.b64encode(certificate.encode()).decode()

    def _sign(self, kwargs):
        return make_response(200, {"crt": "", "clientCrt": self._issue(kwargs), "caCrt": ""})

    def _renew(self, kwargs):
        return make_response(201, {"clientCrt": self._issue(kwargs)})

    def __call__(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        handler = self.routes.get((method, url))
        if handler is None:
            return make_response(404, content=b"not found")
        return handler(kwargs)

    def urls_called(self):
        return [(method, url) for method, url, _ in self.calls]


@pytest.fixture
def server(ca, enrollment_info_payload, runtime_info_payload):
    return FakeConnectorServer(ca, enrollment_info_payload, runtime_info_payload)


@pytest.fixture
def key_and_certificate(ca):
    """(private_key_pem, certificate_pem) pair issued by the test CA."""
    from appconnect.identity import CSRGenerator, parse_subject

    csr_pem, key_pem = CSRGenerator("ec256").generate(parse_subject(SUBJECT))
    return key_pem, ca.sign(csr_pem)

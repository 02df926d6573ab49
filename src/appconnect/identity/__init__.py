"""
AppConnect Identity Primitives

- DistinguishedName / parse_subject: enrollment subject parsing
- CSRGenerator: fresh key pair + PKCS#10 request per call

These are network-free building blocks used by the LifecycleController.
"""

from .csr_generator import CSRGenerator, KeySpec, generate, parse_key_algorithm
from .dn import DistinguishedName, from_x509_name, parse_subject

__all__ = [
    "CSRGenerator",
    "KeySpec",
    "generate",
    "parse_key_algorithm",
    "DistinguishedName",
    "from_x509_name",
    "parse_subject",
]

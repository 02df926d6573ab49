"""
Distinguished-name parsing for enrollment subjects.

The enrollment service announces the subject as a comma-separated list of
``KEY=VALUE`` tokens using PKIX short names, e.g.
``O=Organization,OU=OrgUnit,L=Waldorf,ST=Waldorf,C=DE,CN=orders``.
"""

from dataclasses import dataclass, fields
from typing import Dict, Optional

from cryptography import x509
from cryptography.x509.oid import NameOID

# PKIX short name -> DistinguishedName attribute
SHORT_NAMES: Dict[str, str] = {
    "O": "organization",
    "OU": "organizational_unit",
    "L": "locality",
    "ST": "province",
    "C": "country",
    "CN": "common_name",
}

_OID_ATTRS = {
    NameOID.ORGANIZATION_NAME: "organization",
    NameOID.ORGANIZATIONAL_UNIT_NAME: "organizational_unit",
    NameOID.LOCALITY_NAME: "locality",
    NameOID.STATE_OR_PROVINCE_NAME: "province",
    NameOID.COUNTRY_NAME: "country",
    NameOID.COMMON_NAME: "common_name",
}


@dataclass
class DistinguishedName:
    """
    Subject of the client certificate. Only common_name is mandatory for a CSR.

    ``ST`` is read with its PKIX meaning, stateOrProvinceName, and lands in
    ``province``. Older clients treated it as a street address; the signing
    service compares it against the province of the subject it issued.
    """

    common_name: Optional[str] = None
    organization: Optional[str] = None
    organizational_unit: Optional[str] = None
    locality: Optional[str] = None
    province: Optional[str] = None
    country: Optional[str] = None

    def to_subject(self) -> str:
        """Render back to the ``K=V,...`` form, skipping unset fields."""
        parts = []
        for short, attr in SHORT_NAMES.items():
            value = getattr(self, attr)
            if value:
                parts.append(f"{short}={value}")
        return ",".join(parts)

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def from_x509_name(name: x509.Name) -> DistinguishedName:
    """Read the recognized attributes of an x509 subject (last value wins)."""
    dn = DistinguishedName()
    for attribute in name:
        attr = _OID_ATTRS.get(attribute.oid)
        if attr is not None:
            setattr(dn, attr, attribute.value)
    return dn


def parse_subject(subject: str) -> DistinguishedName:
    """
    Parse a subject string into a DistinguishedName.

    Unknown keys and tokens without ``=`` are dropped. When a key repeats, the
    last occurrence wins. The value is everything after the first ``=``.
    """
    dn = DistinguishedName()
    if not subject:
        return dn

    for token in subject.split(","):
        key, sep, value = token.partition("=")
        if not sep:
            continue
        attr = SHORT_NAMES.get(key.strip().upper())
        if attr is None:
            continue
        setattr(dn, attr, value.strip())
    return dn

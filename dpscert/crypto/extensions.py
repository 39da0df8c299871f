"""Fixed X.509v3 extension profile per role (root CA, intermediate CA, leaf).

The profile matches the certificates produced by the device provisioning samples:
CA certificates may only sign certificates, leaf certificates authenticate TLS
clients and servers, and every certificate names its subject as a DNS SAN.
"""
import enum
from typing import List, Optional

from cryptography import x509
from cryptography.x509.oid import ExtensionOID, ExtendedKeyUsageOID

CA_PATH_LENGTH = 12
KEY_ID_LENGTH = 20

_SEQUENCE = 0x30
_KEY_ID_TAG = 0x80  # [0] IMPLICIT OCTET STRING


class Role(enum.Enum):
    ROOT = "root"
    INTERMEDIATE = "intermediate"
    LEAF = "leaf"

    @property
    def isCa(self) -> bool:
        return self is not Role.LEAF


def encodeAuthorityKeyIdentifier(keyId: bytes) -> bytes:
    """DER for AuthorityKeyIdentifier ::= SEQUENCE { keyIdentifier [0] KeyIdentifier }.

    For a 20-byte key id this is ``30 16 80 14 <keyId>``.
    """
    keyId = bytes(keyId)
    if len(keyId) != KEY_ID_LENGTH:
        raise ValueError(f"key identifier must be {KEY_ID_LENGTH} bytes, got {len(keyId)}")
    inner = bytes([_KEY_ID_TAG, len(keyId)]) + keyId
    return bytes([_SEQUENCE, len(inner)]) + inner


def decodeAuthorityKeyIdentifier(der: bytes) -> bytes:
    der = bytes(der)
    if len(der) < 4 or der[0] != _SEQUENCE or der[1] != len(der) - 2:
        raise ValueError("not a DER AuthorityKeyIdentifier sequence")
    if der[2] != _KEY_ID_TAG or der[3] != len(der) - 4:
        raise ValueError("AuthorityKeyIdentifier carries no key identifier")
    keyId = der[4:]
    if len(keyId) != KEY_ID_LENGTH:
        raise ValueError(f"key identifier must be {KEY_ID_LENGTH} bytes, got {len(keyId)}")
    return keyId


def subjectKeyIdentifierOf(cert: x509.Certificate) -> bytes:
    """The SKI digest of ``cert``, computed from its key when the extension is absent."""
    try:
        ext = cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier)
        return ext.value.digest
    except x509.ExtensionNotFound:
        return x509.SubjectKeyIdentifier.from_public_key(cert.public_key()).digest


def _keyUsage(digitalSignature=False, keyEncipherment=False, keyCertSign=False):
    return x509.KeyUsage(
        digital_signature=digitalSignature,
        content_commitment=False,
        key_encipherment=keyEncipherment,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=keyCertSign,
        crl_sign=False,
        encipher_only=False,
        decipher_only=False,
    )


def encodeForRole(role: Role, subjectPublicKey, subjectName: str,
                  issuer: Optional[x509.Certificate] = None) -> List[x509.Extension]:
    exts = []

    if role.isCa:
        exts.append(x509.Extension(ExtensionOID.BASIC_CONSTRAINTS, True,
                                   x509.BasicConstraints(ca=True, path_length=CA_PATH_LENGTH)))
        exts.append(x509.Extension(ExtensionOID.KEY_USAGE, True,
                                   _keyUsage(keyCertSign=True)))
    else:
        # path length cannot be encoded for a non-CA; absent reads back as 0
        exts.append(x509.Extension(ExtensionOID.BASIC_CONSTRAINTS, True,
                                   x509.BasicConstraints(ca=False, path_length=None)))
        exts.append(x509.Extension(ExtensionOID.KEY_USAGE, True,
                                   _keyUsage(digitalSignature=True, keyEncipherment=True)))
        exts.append(x509.Extension(ExtensionOID.EXTENDED_KEY_USAGE, False,
                                   x509.ExtendedKeyUsage([
                                       ExtendedKeyUsageOID.CLIENT_AUTH,
                                       ExtendedKeyUsageOID.SERVER_AUTH,
                                   ])))

    exts.append(x509.Extension(ExtensionOID.SUBJECT_ALTERNATIVE_NAME, False,
                               x509.SubjectAlternativeName([x509.DNSName(subjectName)])))
    exts.append(x509.Extension(ExtensionOID.SUBJECT_KEY_IDENTIFIER, False,
                               x509.SubjectKeyIdentifier.from_public_key(subjectPublicKey)))

    if issuer is not None:
        aki = encodeAuthorityKeyIdentifier(subjectKeyIdentifierOf(issuer))
        exts.append(x509.Extension(ExtensionOID.AUTHORITY_KEY_IDENTIFIER, False,
                                   x509.UnrecognizedExtension(ExtensionOID.AUTHORITY_KEY_IDENTIFIER, aki)))

    return exts

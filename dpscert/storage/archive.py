"""PKCS#12 (.pfx) archives: one key-bearing certificate plus public chain material.

A failed load is classified by parsing the PFX envelope with pyasn1: bytes that do
not decode are a malformed archive; an envelope whose integrity MAC does not match
the password means the password is wrong.
"""
import hashlib
import hmac
import logging
from typing import Callable, List, Optional, Sequence, Tuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12
from pyasn1.codec.ber import decoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import namedtype, tag, univ

from dpscert.common.errors import DecryptionFailed, MalformedArchive, MissingPrivateKey
from dpscert.crypto.keys import isP256
from dpscert.crypto.pki import KeyedCertificate
from dpscert.storage.files import read_bytes

logger = logging.getLogger(__name__)

Observer = Callable[[str], None]

ID_DATA = univ.ObjectIdentifier("1.2.840.113549.1.7.1")
MAC_KEY_ID = 3

_MAC_HASHES = {
    "1.3.14.3.2.26": "sha1",
    "2.16.840.1.101.3.4.2.4": "sha224",
    "2.16.840.1.101.3.4.2.1": "sha256",
    "2.16.840.1.101.3.4.2.2": "sha384",
    "2.16.840.1.101.3.4.2.3": "sha512",
}


class AlgorithmIdentifier(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("algorithm", univ.ObjectIdentifier()),
        namedtype.OptionalNamedType("parameters", univ.Any()),
    )


class DigestInfo(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("digestAlgorithm", AlgorithmIdentifier()),
        namedtype.NamedType("digest", univ.OctetString()),
    )


class MacData(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("mac", DigestInfo()),
        namedtype.NamedType("macSalt", univ.OctetString()),
        namedtype.DefaultedNamedType("iterations", univ.Integer(1)),
    )


class ContentInfo(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("contentType", univ.ObjectIdentifier()),
        namedtype.OptionalNamedType("content", univ.OctetString().subtype(
            explicitTag=tag.Tag(tag.tagClassContext, tag.tagFormatConstructed, 0))),
    )


class PFX(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("version", univ.Integer()),
        namedtype.NamedType("authSafe", ContentInfo()),
        namedtype.OptionalNamedType("macData", MacData()),
    )


def _password_bytes(password: Optional[str]) -> Optional[bytes]:
    return password.encode("utf-8") if password else None


def _bmp_password(password: Optional[str]) -> bytes:
    if not password:
        return b""
    return password.encode("utf-16-be") + b"\x00\x00"


def _fill(data: bytes, v: int) -> bytes:
    if not data:
        return b""
    n = v * ((len(data) + v - 1) // v)
    return (data * (n // len(data) + 1))[:n]


def pkcs12_kdf(hash_name: str, password: bytes, salt: bytes, key_id: int,
               iterations: int, key_len: int) -> bytes:
    """Key derivation from RFC 7292 appendix B.2; ``password`` is the BMPString form."""
    u = hashlib.new(hash_name).digest_size
    v = hashlib.new(hash_name).block_size
    d = bytes([key_id]) * v
    i = bytearray(_fill(salt, v) + _fill(password, v))

    out = b""
    while len(out) < key_len:
        a = hashlib.new(hash_name, d + bytes(i)).digest()
        for _ in range(1, iterations):
            a = hashlib.new(hash_name, a).digest()
        out += a

        b = int.from_bytes((a * (v // u + 1))[:v], "big")
        for j in range(0, len(i), v):
            block = (int.from_bytes(i[j:j + v], "big") + b + 1) % (1 << (8 * v))
            i[j:j + v] = block.to_bytes(v, "big")

    return out[:key_len]


def decode_pfx(data: bytes) -> PFX:
    if not data:
        raise MalformedArchive("empty PKCS#12 archive")
    try:
        pfx, rest = decoder.decode(data, asn1Spec=PFX())
    except PyAsn1Error as e:
        raise MalformedArchive(f"not a PKCS#12 archive: {e}")
    if rest:
        raise MalformedArchive("trailing data after PKCS#12 archive")
    if pfx["authSafe"]["contentType"] != ID_DATA or not pfx["authSafe"]["content"].isValue:
        raise MalformedArchive("unsupported PKCS#12 integrity mode")
    return pfx


def mac_matches(pfx: PFX, password: Optional[str]) -> Optional[bool]:
    """True/False once the integrity MAC is checked; None when it cannot be."""
    mac_data = pfx["macData"]
    if not mac_data.isValue:
        return None
    hash_name = _MAC_HASHES.get(str(mac_data["mac"]["digestAlgorithm"]["algorithm"]))
    if hash_name is None:
        return None

    key = pkcs12_kdf(
        hash_name,
        _bmp_password(password),
        mac_data["macSalt"].asOctets(),
        MAC_KEY_ID,
        int(mac_data["iterations"]),
        hashlib.new(hash_name).digest_size,
    )
    content = pfx["authSafe"]["content"].asOctets()
    expected = hmac.new(key, content, hash_name).digest()
    return hmac.compare_digest(expected, mac_data["mac"]["digest"].asOctets())


def _classify_load_error(data: bytes, password: Optional[str], err: Exception):
    pfx = decode_pfx(data)
    if mac_matches(pfx, password) is True:
        return MalformedArchive(f"PKCS#12 contents could not be parsed: {err}")
    return DecryptionFailed("invalid password for PKCS#12 archive")


def pack(primary: KeyedCertificate, auxiliary: Sequence[KeyedCertificate], password: str) -> bytes:
    if not primary.hasPrivateKey:
        raise MissingPrivateKey(f"{primary.subjectName!r} has no private key to export")
    if not password:
        raise ValueError("archive password must not be empty")

    # auxiliary entries are public-only regardless of what the caller passed
    cas = [a.publicOnly().cert for a in auxiliary]
    return pkcs12.serialize_key_and_certificates(
        name=primary.subjectName.encode("utf-8"),
        key=primary.privateKey,
        cert=primary.cert,
        cas=cas or None,
        encryption_algorithm=serialization.BestAvailableEncryption(password.encode("utf-8")),
    )


def unpack(data: bytes, password: Optional[str],
           observer: Optional[Observer] = None) -> Optional[Tuple[KeyedCertificate, List[KeyedCertificate]]]:
    report = observer or logger.info
    try:
        loaded = pkcs12.load_pkcs12(data, _password_bytes(password))
    except ValueError as e:
        raise _classify_load_error(data, password, e) from e

    entries = []
    if loaded.cert is not None:
        entries.append(KeyedCertificate(loaded.cert.certificate, loaded.key))
    entries.extend(KeyedCertificate(c.certificate) for c in loaded.additional_certs)

    primary = None
    auxiliary = []
    for entry in entries:
        report(f"Found certificate: {entry.thumbprint} CN={entry.subjectName}; "
               f"PrivateKey: {entry.hasPrivateKey}")
        if primary is None and entry.hasPrivateKey:
            primary = entry
        else:
            auxiliary.append(entry.publicOnly())

    if primary is None:
        report("ERROR: archive did not contain any certificate with a private key.")
        return None

    if not isP256(primary.privateKey):
        logger.warning("%s does not use a P-256 key; issued certificates stay P-256", primary.subjectName)
    report(f"Using certificate {primary.thumbprint} CN={primary.subjectName}")
    return primary, auxiliary


def load_archive(path, password: Optional[str], observer: Optional[Observer] = None):
    return unpack(read_bytes(path), password, observer)

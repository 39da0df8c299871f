"""X.509 issuing: self-signed root, CA-issued and leaf certificates; chain checks."""

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization, hashes
from cryptography.x509.oid import NameOID
from typing import List, Optional, Tuple
import datetime
import ipaddress
import logging
import re
import struct

from dpscert.common.errors import InvalidSubjectName, IssuerMissingPrivateKey, UnusableIssuer
from dpscert.crypto.extensions import KEY_ID_LENGTH, Role, encodeForRole, subjectKeyIdentifierOf

logger = logging.getLogger(__name__)

VALIDITY_BACKDATE = datetime.timedelta(days=1)
VALIDITY_PERIOD = datetime.timedelta(days=365)
MAX_COMMON_NAME = 64  # ub-common-name

_HOST_LABEL = re.compile(r"^(?!-)[A-Za-z0-9_-]{1,63}(?<!-)$")


class KeyedCertificate:
    """An X.509 certificate together with the private key it owns, if any.

    The key can be dropped with erasePrivateKey(); using the object as a context
    manager drops it on exit.
    """

    def __init__(self, cert: x509.Certificate, privateKey=None):
        self._cert = cert
        self._privateKey = privateKey

    @property
    def cert(self) -> x509.Certificate:
        return self._cert

    @property
    def privateKey(self):
        return self._privateKey

    @property
    def hasPrivateKey(self) -> bool:
        return self._privateKey is not None

    @property
    def subjectName(self) -> str:
        return commonName(self._cert)

    @property
    def subjectKeyId(self) -> bytes:
        return subjectKeyIdOf(self._cert)

    @property
    def authorityKeyId(self) -> Optional[bytes]:
        return authorityKeyIdOf(self._cert)

    @property
    def thumbprint(self) -> str:
        return self._cert.fingerprint(hashes.SHA1()).hex().upper()

    def publicOnly(self) -> "KeyedCertificate":
        return KeyedCertificate(self._cert)

    def derBytes(self) -> bytes:
        return self._cert.public_bytes(serialization.Encoding.DER)

    def erasePrivateKey(self):
        self._privateKey = None

    def __enter__(self):
        return self

    def __exit__(self, excType, exc, tb):
        self.erasePrivateKey()
        return False

    def __repr__(self):
        return f"<KeyedCertificate {self.subjectName!r} privateKey={self.hasPrivateKey}>"


class SerialCounter:
    """Hands out strictly increasing Unix-second values for serials within one run."""

    def __init__(self):
        self._last = None

    def next(self, now: datetime.datetime) -> int:
        seconds = int(now.timestamp())
        if self._last is not None and seconds <= self._last:
            seconds = self._last + 1
        self._last = seconds
        return seconds


def serialFromSeconds(seconds: int) -> int:
    # 8 bytes of the little-endian timestamp, read as the big-endian serial
    return int.from_bytes(struct.pack("<q", seconds), "big")


def commonName(cert: x509.Certificate) -> str:
    attrs = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    return attrs[0].value if attrs else ""


def subjectKeyIdOf(cert: x509.Certificate) -> bytes:
    return subjectKeyIdentifierOf(cert)


def authorityKeyIdOf(cert: x509.Certificate) -> Optional[bytes]:
    try:
        ext = cert.extensions.get_extension_for_oid(x509.oid.ExtensionOID.AUTHORITY_KEY_IDENTIFIER)
    except x509.ExtensionNotFound:
        return None
    return ext.value.key_identifier


def basicConstraintsOf(cert: x509.Certificate) -> Tuple[bool, int]:
    bc = cert.extensions.get_extension_for_class(x509.BasicConstraints).value
    return bc.ca, bc.path_length if bc.path_length is not None else 0


def isValidHostName(name: str) -> bool:
    try:
        ipaddress.ip_address(name)
        return True
    except ValueError:
        pass

    host = name[:-1] if name.endswith(".") else name
    if not host or len(host) > 253:
        return False
    return all(_HOST_LABEL.match(label) for label in host.split("."))


def validityWindow(now: datetime.datetime, issuer: Optional[x509.Certificate]):
    notBefore = now - VALIDITY_BACKDATE
    notAfter = now + VALIDITY_PERIOD
    if issuer is not None:
        notBefore = max(notBefore, issuer.not_valid_before_utc)
        notAfter = min(notAfter, issuer.not_valid_after_utc)
    return notBefore, notAfter


def checkSubjectName(subjectName, role: Role):
    """Raise InvalidSubjectName unless the name fits both the subject CN and the DNS SAN."""
    if not isinstance(subjectName, str) or not subjectName.strip():
        raise InvalidSubjectName("subject name must be a non-empty string")
    if len(subjectName) > MAX_COMMON_NAME:
        raise InvalidSubjectName(f"subject name must be at most {MAX_COMMON_NAME} characters, "
                                 f"got {len(subjectName)}")
    if not subjectName.isascii():
        raise InvalidSubjectName(f"subject name must be ASCII (use the A-label form): {subjectName!r}")
    if role is Role.LEAF and not isValidHostName(subjectName):
        raise InvalidSubjectName(f"subject name must be a valid DNS name: {subjectName!r}")


def checkIssuer(issuerCert: x509.Certificate, notBefore, notAfter):
    if notAfter <= notBefore:
        raise UnusableIssuer(f"signing certificate {commonName(issuerCert)!r} is outside its validity window "
                             f"({issuerCert.not_valid_before_utc.isoformat()} .. "
                             f"{issuerCert.not_valid_after_utc.isoformat()})")
    keyId = subjectKeyIdOf(issuerCert)
    if len(keyId) != KEY_ID_LENGTH:
        raise UnusableIssuer(f"signing certificate {commonName(issuerCert)!r} has a {len(keyId)}-byte "
                             f"key identifier; {KEY_ID_LENGTH} bytes are required")


def buildCertificate(subjectName: str, keyPair, role: Role,
                     issuer: Optional[KeyedCertificate] = None,
                     now: Optional[datetime.datetime] = None,
                     serials: Optional[SerialCounter] = None) -> KeyedCertificate:
    checkSubjectName(subjectName, role)
    if role is Role.ROOT and issuer is not None:
        raise ValueError("a root certificate is self-signed and takes no issuer")
    if role is not Role.ROOT and issuer is None:
        raise ValueError(f"{role.value} certificate requires an issuer")
    if issuer is not None and not issuer.hasPrivateKey:
        raise IssuerMissingPrivateKey(f"signing certificate {issuer.subjectName!r} must have a private key")

    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    now = now.astimezone(datetime.timezone.utc).replace(microsecond=0)
    serials = serials or SerialCounter()

    issuerCert = issuer.cert if issuer is not None else None
    notBefore, notAfter = validityWindow(now, issuerCert)
    if issuerCert is not None:
        checkIssuer(issuerCert, notBefore, notAfter)

    subject = x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, subjectName),
    ])
    publicKey = keyPair.public_key()

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuerCert.subject if issuerCert is not None else subject)
        .public_key(publicKey)
        .serial_number(serialFromSeconds(serials.next(now)))
        .not_valid_before(notBefore)
        .not_valid_after(notAfter)
    )
    for ext in encodeForRole(role, publicKey, subjectName, issuerCert):
        builder = builder.add_extension(ext.value, critical=ext.critical)

    signingKey = issuer.privateKey if issuer is not None else keyPair
    cert = builder.sign(private_key=signingKey, algorithm=hashes.SHA256())

    logger.debug("built %s certificate %s (serial %x)", role.value, subjectName, cert.serial_number)
    return KeyedCertificate(cert, keyPair)


def verifyIssuedBy(cert: x509.Certificate, issuerCert: x509.Certificate):
    try:
        cert.verify_directly_issued_by(issuerCert)
        return True, ""
    except (ValueError, TypeError, InvalidSignature) as e:
        return False, f"bad signature: {str(e) or type(e).__name__}"


def checkValidity(cert: x509.Certificate, now: Optional[datetime.datetime] = None):
    now = now or datetime.datetime.now(datetime.timezone.utc)
    if now < cert.not_valid_before_utc:
        return False, f"not yet valid (not_before={cert.not_valid_before_utc.isoformat()})"
    if now > cert.not_valid_after_utc:
        return False, f"expired (not_after={cert.not_valid_after_utc.isoformat()})"
    return True, ""


def verifyChain(primary: KeyedCertificate, auxiliary: List[KeyedCertificate]):
    """Follow AKI -> SKI links from ``primary`` to a self-signed root in ``auxiliary``."""
    bySki = {c.subjectKeyId: c.cert for c in auxiliary}
    current = primary.cert
    seen = set()

    while True:
        aki = authorityKeyIdOf(current)
        if aki is None or aki == subjectKeyIdOf(current):
            return verifyIssuedBy(current, current)

        if aki in seen:
            return False, f"loop in chain at {commonName(current)}"
        seen.add(aki)

        issuer = bySki.get(aki)
        if issuer is None:
            return False, f"issuer of {commonName(current)} not found (keyid={aki.hex()})"

        ca, _ = basicConstraintsOf(issuer)
        if not ca:
            return False, f"issuer {commonName(issuer)} is not a CA"

        ok, reason = verifyIssuedBy(current, issuer)
        if not ok:
            return False, f"{commonName(current)}: {reason}"

        if current.not_valid_after_utc > issuer.not_valid_after_utc:
            return False, f"{commonName(current)} outlives its issuer"
        current = issuer

"""Certificate chain generation, device issuance and portal verification certificates.

Each entry point builds everything in memory and returns the artifacts to write;
writeArtifacts() is only called once a request has fully succeeded, so a failed
request leaves no files behind.
"""
import datetime
import logging
from pathlib import Path
from typing import List, NamedTuple, Optional

from dpscert.common.errors import NoUsablePrivateKeyCertificate
from dpscert.common.models import MAX_INTERMEDIATES
from dpscert.crypto.extensions import Role
from dpscert.crypto.keys import generateKeyPair
from dpscert.crypto.pki import KeyedCertificate, SerialCounter, buildCertificate
from dpscert.storage import archive
from dpscert.storage.files import write_bytes

logger = logging.getLogger(__name__)


class Artifact(NamedTuple):
    filename: str
    data: bytes


class ChainResult(NamedTuple):
    artifacts: List[Artifact]
    issuer: KeyedCertificate
    chain: List[KeyedCertificate]


def intermediateName(rootName: str, index: int) -> str:
    return f"{rootName} - Intermediate {index}"


def createCertChain(rootName: str, password: str, intermediateCount: int = 0,
                    now: Optional[datetime.datetime] = None) -> ChainResult:
    """Root CA plus ``intermediateCount`` intermediates, one archive per CA.

    The deepest CA is returned as ``issuer`` with its private key; every other key
    created here is erased before returning, on success or failure.
    """
    if not 0 <= intermediateCount <= MAX_INTERMEDIATES:
        raise ValueError(f"intermediate count must be between 0 and {MAX_INTERMEDIATES}")

    serials = SerialCounter()
    artifacts = []
    publicChain = []
    created = []
    previousCa = None
    completed = False

    try:
        root = buildCertificate(rootName, generateKeyPair(), Role.ROOT, now=now, serials=serials)
        created.append(root)
        artifacts.append(Artifact(f"{rootName}.pfx", archive.pack(root, [], password)))
        artifacts.append(Artifact(f"{rootName}.cer", root.publicOnly().derBytes()))
        logger.info("created root CA %s", rootName)

        previousCa = root
        for i in range(1, intermediateCount + 1):
            intermediate = buildCertificate(intermediateName(rootName, i), generateKeyPair(),
                                            Role.INTERMEDIATE, issuer=previousCa, now=now, serials=serials)
            created.append(intermediate)
            previousPublic = previousCa.publicOnly()
            artifacts.append(Artifact(f"Intermediate {i}.pfx",
                                      archive.pack(intermediate, publicChain + [previousPublic], password)))
            publicChain.append(previousPublic)
            previousCa = intermediate
            logger.info("created intermediate CA %s", intermediate.subjectName)
        completed = True
    finally:
        for cert in created:
            if not completed or cert is not previousCa:
                cert.erasePrivateKey()

    return ChainResult(artifacts, previousCa, [c.publicOnly() for c in created])


def _loadSigningCa(caArchive: bytes, caPassword: Optional[str], observer=None):
    loaded = archive.unpack(caArchive, caPassword, observer)
    if loaded is None:
        raise NoUsablePrivateKeyCertificate("Could not load a certificate with private key from the CA archive.")
    return loaded


def issueLeaf(subjectName: str, signingCa: KeyedCertificate,
              now: Optional[datetime.datetime] = None) -> KeyedCertificate:
    return buildCertificate(subjectName, generateKeyPair(), Role.LEAF, issuer=signingCa, now=now)


def createDeviceCert(subjectName: str, password: str, caArchive: bytes, caPassword: Optional[str],
                     observer=None, now: Optional[datetime.datetime] = None) -> List[Artifact]:
    signingCa, caChain = _loadSigningCa(caArchive, caPassword, observer)
    with signingCa:
        with issueLeaf(subjectName, signingCa, now) as leaf:
            data = archive.pack(leaf, [signingCa.publicOnly()] + caChain, password)
    logger.info("issued device certificate %s", subjectName)
    return [Artifact(f"{subjectName}.pfx", data)]


def createVerificationCert(subject: str, caArchive: bytes, caPassword: Optional[str],
                           observer=None, now: Optional[datetime.datetime] = None) -> List[Artifact]:
    signingCa, _ = _loadSigningCa(caArchive, caPassword, observer)
    with signingCa:
        with issueLeaf(subject, signingCa, now) as cert:
            data = cert.publicOnly().derBytes()
    logger.info("issued verification certificate %s", subject)
    return [Artifact(f"{subject}.cer", data)]


def writeArtifacts(outDir, artifacts: List[Artifact]) -> List[Path]:
    outDir = Path(outDir)
    written = []
    for artifact in artifacts:
        written.append(write_bytes(outDir / artifact.filename, artifact.data))
        logger.info("wrote %s", written[-1])
    return written

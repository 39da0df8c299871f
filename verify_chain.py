#!/usr/bin/env python3
import sys

from cryptography import x509
from cryptography.x509.oid import ExtensionOID

from dpscert.common.errors import DpsCertError
from dpscert.crypto.extensions import decodeAuthorityKeyIdentifier
from dpscert.crypto.pki import basicConstraintsOf, checkValidity, verifyChain
from dpscert.storage.archive import load_archive

FAILED = -1

def checkAkiEncoding(cert):
    """(ok, reason): the AKI, when present, must be exactly SEQUENCE { [0] 20-byte keyid }."""
    try:
        ext = cert.cert.extensions.get_extension_for_oid(ExtensionOID.AUTHORITY_KEY_IDENTIFIER)
    except x509.ExtensionNotFound:
        return True, ""
    try:
        keyId = decodeAuthorityKeyIdentifier(ext.value.public_bytes())
    except ValueError as e:
        return False, f"{cert.subjectName}: {e}"
    if keyId != cert.authorityKeyId:
        return False, f"{cert.subjectName}: AKI key identifier does not match its encoding"
    return True, ""

def describe(cert):
    ca, pathLen = basicConstraintsOf(cert.cert)
    aki = cert.authorityKeyId
    print(f"  subject: {cert.subjectName}")
    print(f"    thumbprint: {cert.thumbprint}")
    print(f"    serial:     {cert.cert.serial_number:x}")
    print(f"    validity:   {cert.cert.not_valid_before_utc.isoformat()} .. {cert.cert.not_valid_after_utc.isoformat()}")
    print(f"    CA:         {ca} (pathlen={pathLen})")
    print(f"    SKI:        {cert.subjectKeyId.hex()}")
    print(f"    AKI:        {aki.hex() if aki else '-'}")

def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 2:
        print("Usage: verify_chain.py <archive.pfx> <password>")
        return FAILED

    archivePath, password = argv

    print("=== Offline Chain Verification ===")
    print(f"Archive: {archivePath}")
    print("----------------------------------")

    try:
        loaded = load_archive(archivePath, password, observer=lambda msg: print(f"[*] {msg}"))
    except DpsCertError as e:
        print(f"[FAIL] {e.message}")
        return e.exitCode

    if loaded is None:
        print("[FAIL] No certificate with a private key in archive")
        return FAILED

    primary, auxiliary = loaded
    with primary:
        describe(primary)
        for cert in auxiliary:
            describe(cert)

        ok, reason = checkValidity(primary.cert)
        if not ok:
            print(f"[FAIL] {reason}")
            return FAILED
        print("[+] Certificate is within its validity window")

        for cert in [primary] + auxiliary:
            ok, reason = checkAkiEncoding(cert)
            if not ok:
                print(f"[FAIL] {reason}")
                return FAILED
        print("[+] Every AKI is a 20-byte key identifier")

        ok, reason = verifyChain(primary, auxiliary)
        if not ok:
            print(f"[FAIL] {reason}")
            return FAILED

    print("[+] Every AKI matches its issuer's SKI and every signature verifies")
    print("RESULT: PASS")
    return 0

if __name__ == "__main__":
    sys.exit(main())

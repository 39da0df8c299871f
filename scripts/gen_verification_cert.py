#!/usr/bin/env python3
"""Issue a portal verification cert (.cer) from a root CA .pfx to prove CA ownership."""

import argparse
import sys

from pydantic import ValidationError

from dpscert.chain import createVerificationCert, writeArtifacts
from dpscert.common import config
from dpscert.common.errors import DpsCertError
from dpscert.common.models import VerificationCertRequest
from dpscert.storage.files import read_bytes

def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("-s", "--subject", required=True,
                        help="Verification code from the portal; used as subject and filename")
    parser.add_argument("-c", "--ca-pfx", default=config.CA_PFX,
                        help="The .pfx file holding the root CA (env DPS_CA_PFX)")
    parser.add_argument("-p", "--ca-password", default=config.CA_PASSWORD,
                        help="Password of the CA .pfx file (env DPS_CA_PASSWORD)")
    parser.add_argument("--out", default=config.OUT_DIR, help="Output directory")
    args = parser.parse_args(argv)

    config.configureLogging()

    try:
        req = VerificationCertRequest(subject=args.subject, caPfxFile=args.ca_pfx or "",
                                      caPassword=args.ca_password)
    except ValidationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return -2

    try:
        artifacts = createVerificationCert(req.subject, read_bytes(req.caPfxFile), req.caPassword)
    except DpsCertError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        return e.exitCode

    paths = writeArtifacts(args.out, artifacts)

    print(f"Issued Verification Certificate:")
    for p in paths:
        print(f"    {p}")
    return 0

if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""Issue a device cert signed by the CA in a .pfx file (SAN=DNSName(CN), TLS client+server)."""

import argparse
import sys

from pydantic import ValidationError

from dpscert.chain import createDeviceCert, writeArtifacts
from dpscert.common import config
from dpscert.common.errors import DpsCertError
from dpscert.common.models import DeviceCertRequest
from dpscert.storage.files import read_bytes

def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("-s", "--subject", required=True,
                        help="Subject name of the new certificate; the .pfx is named after it")
    parser.add_argument("-p", "--password", required=True, help="Password of the generated .pfx file")
    parser.add_argument("-c", "--ca-pfx", default=config.CA_PFX,
                        help="The .pfx file holding the signing CA (env DPS_CA_PFX)")
    parser.add_argument("-q", "--ca-password", default=config.CA_PASSWORD,
                        help="Password of the CA .pfx file (env DPS_CA_PASSWORD)")
    parser.add_argument("--out", default=config.OUT_DIR, help="Output directory")
    args = parser.parse_args(argv)

    config.configureLogging()

    try:
        req = DeviceCertRequest(subjectName=args.subject, password=args.password,
                                caPfxFile=args.ca_pfx or "", caPassword=args.ca_password)
    except ValidationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return -2

    try:
        artifacts = createDeviceCert(req.subjectName, req.password,
                                     read_bytes(req.caPfxFile), req.caPassword)
    except DpsCertError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        return e.exitCode

    paths = writeArtifacts(args.out, artifacts)

    print(f"Issued Certificate:")
    for p in paths:
        print(f"    {p}")
    return 0

if __name__ == "__main__":
    sys.exit(main())

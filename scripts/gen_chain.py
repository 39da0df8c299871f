#!/usr/bin/env python3

"""Create Root CA (EC P-256, self-signed) and a chain of intermediate CAs as .pfx files."""
import argparse
import sys

from pydantic import ValidationError

from dpscert.chain import createCertChain, writeArtifacts
from dpscert.common import config
from dpscert.common.errors import DpsCertError
from dpscert.common.models import ChainRequest, MAX_INTERMEDIATES

def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("-s", "--subject", required=True,
                        help="Root CA subject name; also the base of the generated filenames")
    parser.add_argument("-p", "--password", required=True, help="Password of the generated .pfx files")
    parser.add_argument("-i", "--intermediates", type=int, default=0,
                        help=f"Number of intermediate CAs to create (0-{MAX_INTERMEDIATES})")
    parser.add_argument("--out", default=config.OUT_DIR, help="Output directory")
    args = parser.parse_args(argv)

    config.configureLogging()

    try:
        req = ChainRequest(rootName=args.subject, password=args.password, intermediates=args.intermediates)
    except ValidationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return -2

    try:
        result = createCertChain(req.rootName, req.password, req.intermediates)
    except DpsCertError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        return e.exitCode

    with result.issuer:
        paths = writeArtifacts(args.out, result.artifacts)

    print(f"Created certificate chain:")
    for p in paths:
        print(f"    {p}")
    return 0

if __name__ == "__main__":
    sys.exit(main())

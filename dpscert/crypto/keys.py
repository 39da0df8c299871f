"""EC P-256 key pair generation and curve checks."""
from cryptography.hazmat.primitives.asymmetric import ec

CURVE = ec.SECP256R1


def generateKeyPair() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(CURVE())


def isP256(key) -> bool:
    return isinstance(key, (ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey)) \
        and isinstance(key.curve, CURVE)

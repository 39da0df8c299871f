import pytest
from cryptography import x509
from cryptography.x509.oid import ExtensionOID, ExtendedKeyUsageOID, ObjectIdentifier

from dpscert.crypto.extensions import (
    Role,
    encodeForRole,
    encodeAuthorityKeyIdentifier,
    decodeAuthorityKeyIdentifier,
    subjectKeyIdentifierOf,
)
from dpscert.crypto.keys import generateKeyPair, isP256


def byOid(exts):
    return {e.oid.dotted_string: e for e in exts}


def test_generated_keys_use_p256():
    key = generateKeyPair()
    assert isP256(key)
    assert isP256(key.public_key())
    assert key.curve.name == "secp256r1"


def test_aki_der_layout():
    keyId = bytes(range(20))
    der = encodeAuthorityKeyIdentifier(keyId)
    assert der[:4] == bytes([0x30, 0x16, 0x80, 0x14])
    assert der[4:] == keyId
    assert len(der) == 24
    assert decodeAuthorityKeyIdentifier(der) == keyId


def test_aki_der_matches_library_encoding():
    keyId = b"\xaa" * 20
    expected = x509.AuthorityKeyIdentifier(key_identifier=keyId, authority_cert_issuer=None,
                                           authority_cert_serial_number=None).public_bytes()
    assert encodeAuthorityKeyIdentifier(keyId) == expected


@pytest.mark.parametrize("length", [0, 19, 21, 32])
def test_aki_rejects_wrong_key_id_length(length):
    with pytest.raises(ValueError):
        encodeAuthorityKeyIdentifier(b"\x01" * length)


def test_aki_decode_rejects_other_structures():
    with pytest.raises(ValueError):
        decodeAuthorityKeyIdentifier(b"\x04\x14" + b"\x00" * 20)


@pytest.mark.parametrize("role", [Role.ROOT, Role.INTERMEDIATE])
def test_ca_profile(role, rootCa):
    key = generateKeyPair()
    issuer = rootCa.cert if role is Role.INTERMEDIATE else None
    exts = byOid(encodeForRole(role, key.public_key(), "ca-name", issuer))

    bc = exts["2.5.29.19"]
    assert bc.critical
    assert bc.value.ca is True
    assert bc.value.path_length == 12

    ku = exts["2.5.29.15"]
    assert ku.critical
    assert ku.value.key_cert_sign
    assert not ku.value.digital_signature
    assert not ku.value.key_encipherment

    assert "2.5.29.37" not in exts


def test_leaf_profile(rootCa):
    key = generateKeyPair()
    exts = byOid(encodeForRole(Role.LEAF, key.public_key(), "device-001", rootCa.cert))

    bc = exts["2.5.29.19"]
    assert bc.critical
    assert bc.value.ca is False
    assert bc.value.path_length is None

    ku = exts["2.5.29.15"]
    assert ku.critical
    assert ku.value.digital_signature
    assert ku.value.key_encipherment
    assert not ku.value.key_cert_sign

    eku = exts["2.5.29.37"]
    assert not eku.critical
    assert list(eku.value) == [ExtendedKeyUsageOID.CLIENT_AUTH, ExtendedKeyUsageOID.SERVER_AUTH]
    assert [o.dotted_string for o in eku.value] == ["1.3.6.1.5.5.7.3.2", "1.3.6.1.5.5.7.3.1"]


@pytest.mark.parametrize("role", list(Role))
def test_san_and_ski_for_every_role(role, rootCa):
    key = generateKeyPair()
    issuer = None if role is Role.ROOT else rootCa.cert
    exts = byOid(encodeForRole(role, key.public_key(), "name-1", issuer))

    san = exts["2.5.29.17"]
    assert san.value.get_values_for_type(x509.DNSName) == ["name-1"]

    ski = exts["2.5.29.14"]
    assert not ski.critical
    assert len(ski.value.digest) == 20
    assert ski.value == x509.SubjectKeyIdentifier.from_public_key(key.public_key())


def test_root_has_no_aki():
    key = generateKeyPair()
    exts = byOid(encodeForRole(Role.ROOT, key.public_key(), "root", None))
    assert "2.5.29.35" not in exts


def test_aki_carries_issuer_ski(rootCa):
    key = generateKeyPair()
    exts = byOid(encodeForRole(Role.INTERMEDIATE, key.public_key(), "sub", rootCa.cert))

    aki = exts["2.5.29.35"]
    assert not aki.critical
    assert aki.oid == ExtensionOID.AUTHORITY_KEY_IDENTIFIER
    assert aki.value.oid == ObjectIdentifier("2.5.29.35")
    assert aki.value.value == b"\x30\x16\x80\x14" + rootCa.subjectKeyId


def test_profile_order():
    key = generateKeyPair()
    ca = encodeForRole(Role.ROOT, key.public_key(), "root", None)
    assert [e.oid.dotted_string for e in ca] == ["2.5.29.19", "2.5.29.15", "2.5.29.17", "2.5.29.14"]


def test_issuer_without_ski_falls_back_to_key_hash(rootCa):
    # stand-in certificate object exposing no SKI extension
    class NoSki:
        extensions = x509.Extensions([])

        def public_key(self):
            return rootCa.cert.public_key()

    assert subjectKeyIdentifierOf(NoSki()) == rootCa.subjectKeyId

import datetime
import importlib.util
from pathlib import Path

import pytest

from dpscert.crypto.extensions import Role
from dpscert.crypto.keys import generateKeyPair
from dpscert.crypto.pki import buildCertificate

ROOT_DIR = Path(__file__).resolve().parents[1]
NOW = datetime.datetime(2026, 3, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def rootCa(now):
    return buildCertificate("TestRoot", generateKeyPair(), Role.ROOT, now=now)


@pytest.fixture
def intermediateCa(rootCa, now):
    return buildCertificate("TestRoot - Intermediate 1", generateKeyPair(), Role.INTERMEDIATE,
                            issuer=rootCa, now=now)


@pytest.fixture
def leafCert(intermediateCa, now):
    return buildCertificate("device-001", generateKeyPair(), Role.LEAF, issuer=intermediateCa, now=now)


def _loadScript(name):
    path = ROOT_DIR / "scripts" / f"{name}.py"
    spec = importlib.util.spec_from_file_location(name, path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def genChain():
    return _loadScript("gen_chain")


@pytest.fixture
def genDeviceCert():
    return _loadScript("gen_device_cert")


@pytest.fixture
def genVerificationCert():
    return _loadScript("gen_verification_cert")

"""Typed failures for certificate generation and archive loading."""


class DpsCertError(Exception):
    exitCode = -1

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidSubjectName(DpsCertError):
    exitCode = -2


class IssuerMissingPrivateKey(DpsCertError):
    exitCode = -3


class MissingPrivateKey(DpsCertError):
    exitCode = -3


class FileNotFound(DpsCertError):
    exitCode = -4


class InvalidPath(DpsCertError):
    exitCode = -4


class DecryptionFailed(DpsCertError):
    exitCode = -5


class MalformedArchive(DpsCertError):
    exitCode = -6


class NoUsablePrivateKeyCertificate(DpsCertError):
    exitCode = -1


class UnusableIssuer(DpsCertError):
    """The signing CA cannot issue: its validity window is over or its key id is not 20 bytes."""
    exitCode = -7

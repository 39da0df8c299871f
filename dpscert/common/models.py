"""Pydantic models: chain, device_cert and verification_cert requests."""
from pydantic import BaseModel, Field, field_validator
from typing import Optional
import re

MAX_INTERMEDIATES = 5

_ILLEGAL_FILENAME = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def _checkFileSafe(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    if _ILLEGAL_FILENAME.search(value):
        raise ValueError("must be usable as a file name")
    return value


class ChainRequest(BaseModel):
    rootName: str = Field(min_length=1)
    password: str = Field(min_length=1)
    intermediates: int = Field(default=0, ge=0, le=MAX_INTERMEDIATES)

    @field_validator("rootName")
    @classmethod
    def rootNameIsFileSafe(cls, v):
        return _checkFileSafe(v)


class DeviceCertRequest(BaseModel):
    subjectName: str = Field(min_length=1)
    password: str = Field(min_length=1)
    caPfxFile: str = Field(min_length=1)
    caPassword: Optional[str] = None

    @field_validator("subjectName")
    @classmethod
    def subjectNameIsFileSafe(cls, v):
        return _checkFileSafe(v)


class VerificationCertRequest(BaseModel):
    subject: str = Field(min_length=1)
    caPfxFile: str = Field(min_length=1)
    caPassword: Optional[str] = None

    @field_validator("subject")
    @classmethod
    def subjectIsFileSafe(cls, v):
        return _checkFileSafe(v)

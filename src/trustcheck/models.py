from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

from pydantic import BaseModel, Field, conint

from . import constants
from .certificate import Certificate, LeafCertificate, classify_chain
from .exceptions import OCSPError

__module__ = "trustcheck.models"


class SeedSource(str, Enum):
    BOOTSTRAP = "bootstrap"
    FEED = "feed"
    FILE = "file"


class ValidationVerdict(str, Enum):
    VALID = "Valid"
    NOT_YET_VALID = "NotYetValid"
    EXPIRED = "Expired"
    CHAIN_UNTRUSTED = "ChainUntrusted"
    CHAIN_VALID = "ChainValid"


class UntrustedReason(str, Enum):
    NO_PATH = "no path found"
    HOSTNAME_MISMATCH = "hostname mismatch"
    EXPIRED_ANCHOR = "expired anchor"
    PATH_LENGTH_EXCEEDED = "path length exceeded"
    EMPTY_TRUST_STORE = "empty trust store"
    RETRIEVED_INSECURELY = "chain retrieved insecurely"


class RevocationStatus(str, Enum):
    GOOD = "Good"
    REVOKED = "Revoked"
    UNKNOWN = "Unknown"
    CHECK_FAILED = "CheckFailed"


@dataclass(frozen=True)
class Seed:
    kind: SeedSource
    location: Union[str, None] = None


@dataclass
class RetrievedChain:
    hostname: str
    port: int
    certificates: list[Certificate]
    verified_chain: list[Certificate] = field(default_factory=list)
    insecure: bool = False
    negotiated_protocol: Union[str, None] = None
    negotiated_cipher: Union[str, None] = None
    peer_address: Union[str, None] = None
    verify_errors: list[int] = field(default_factory=list)

    @property
    def leaf(self) -> Union[LeafCertificate, None]:
        return self.certificates[0] if self.certificates else None

    @property
    def intermediates(self) -> list[Certificate]:
        return self.certificates[1:]

    @classmethod
    def from_x509(cls, hostname: str, port: int, certificates: list, **kwargs):
        return cls(
            hostname=hostname,
            port=port,
            certificates=classify_chain(certificates),
            **kwargs,
        )


@dataclass
class ChainVerdict:
    verdict: ValidationVerdict
    reason: Union[UntrustedReason, None] = None
    message: Union[str, None] = None

    @property
    def trusted(self) -> bool:
        return self.verdict == ValidationVerdict.CHAIN_VALID

    @classmethod
    def valid(cls, message: str = None):
        return cls(verdict=ValidationVerdict.CHAIN_VALID, message=message)

    @classmethod
    def untrusted(cls, reason: UntrustedReason, message: str = None):
        return cls(
            verdict=ValidationVerdict.CHAIN_UNTRUSTED,
            reason=reason,
            message=message or reason.value,
        )

    def to_dict(self) -> dict:
        return {
            "verdict": self.verdict.value,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
        }


@dataclass
class RevocationVerdict:
    status: RevocationStatus
    revocation_time: Union[datetime, None] = None
    revocation_reason: Union[str, None] = None
    reason: Union[str, None] = None
    error: Union[OCSPError, None] = None
    responder_url: Union[str, None] = None
    this_update: Union[datetime, None] = None
    next_update: Union[datetime, None] = None

    @classmethod
    def good(cls, **kwargs):
        return cls(status=RevocationStatus.GOOD, **kwargs)

    @classmethod
    def revoked(cls, revocation_time: datetime, **kwargs):
        return cls(
            status=RevocationStatus.REVOKED, revocation_time=revocation_time, **kwargs
        )

    @classmethod
    def unknown(cls, **kwargs):
        return cls(status=RevocationStatus.UNKNOWN, **kwargs)

    @classmethod
    def check_failed(cls, error: OCSPError, **kwargs):
        return cls(
            status=RevocationStatus.CHECK_FAILED,
            reason=str(error),
            error=error,
            responder_url=kwargs.pop("responder_url", error.url),
            **kwargs,
        )

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "revocation_time": self.revocation_time.isoformat()
            if self.revocation_time
            else None,
            "revocation_reason": self.revocation_reason,
            "reason": self.reason,
            "failure": self.error.reason.value if self.error else None,
            "responder_url": self.responder_url,
            "this_update": self.this_update.isoformat() if self.this_update else None,
            "next_update": self.next_update.isoformat() if self.next_update else None,
        }


@dataclass
class CertificateReport:
    certificate: Certificate
    validity: ValidationVerdict
    revocation: Union[RevocationVerdict, None] = None

    def to_dict(self) -> dict:
        data = self.certificate.to_dict()
        data["validity"] = self.validity.value
        data["revocation"] = self.revocation.to_dict() if self.revocation else None
        return data


@dataclass
class HostReport:
    hostname: str
    port: int
    chain: Union[RetrievedChain, None] = None
    chain_verdict: Union[ChainVerdict, None] = None
    certificates: list[CertificateReport] = field(default_factory=list)
    error: Union[tuple[str, str], None] = None

    @property
    def leaf(self) -> Union[CertificateReport, None]:
        return self.certificates[0] if self.certificates else None

    def to_dict(self) -> dict:
        data = {
            "transport": {
                "hostname": self.hostname,
                "port": self.port,
            },
        }
        if self.error:
            data["error"] = self.error
            return data
        data["transport"].update(
            {
                "peer_address": self.chain.peer_address,
                "negotiated_protocol": self.chain.negotiated_protocol,
                "negotiated_cipher": self.chain.negotiated_cipher,
                "insecure": self.chain.insecure,
            }
        )
        data["chain"] = self.chain_verdict.to_dict() if self.chain_verdict else None
        data["certificates"] = [report.to_dict() for report in self.certificates]
        return data


class ConfigDefaults(BaseModel):
    insecure: bool = Field(default=False)
    timeout: conint(gt=0) = Field(default=constants.DEFAULT_TIMEOUT)
    feed_url: str = Field(default=constants.CCADB_FEED_URL)
    use_feed: bool = Field(default=True)
    use_bootstrap: bool = Field(default=True)
    cafile: Union[str, None] = Field(default=None)
    skip_ocsp: bool = Field(default=False)
    workers: conint(gt=0) = Field(default=constants.DEFAULT_WORKERS)


class ConfigTarget(BaseModel):
    hostname: str
    port: conint(gt=0, lt=65536) = Field(default=constants.DEFAULT_PORT)

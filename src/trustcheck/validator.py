import logging
from datetime import datetime, timezone
from typing import Union

from cryptography import x509
from cryptography.x509 import DNSName
from cryptography.x509.verification import PolicyBuilder, Store, VerificationError

from . import util
from .certificate import Certificate, to_x509
from .models import (
    ChainVerdict,
    RetrievedChain,
    UntrustedReason,
    ValidationVerdict,
)

__module__ = "trustcheck.validator"

logger = logging.getLogger(__name__)


def _utc(reference_time: Union[datetime, None]) -> datetime:
    if reference_time is None:
        return datetime.now(timezone.utc)
    if reference_time.tzinfo is None:
        return reference_time.replace(tzinfo=timezone.utc)
    return reference_time.astimezone(timezone.utc)


class ChainValidator:
    def check_validity(
        self,
        cert: Union[Certificate, x509.Certificate],
        reference_time: datetime = None,
    ) -> ValidationVerdict:
        cert = to_x509(cert)
        now = _utc(reference_time)
        # a degenerate window (not before in the future, not after in the past) is Expired
        if now > cert.not_valid_after_utc:
            return ValidationVerdict.EXPIRED
        if now < cert.not_valid_before_utc:
            return ValidationVerdict.NOT_YET_VALID
        return ValidationVerdict.VALID

    def verify_chain(
        self,
        leaf: Union[Certificate, x509.Certificate],
        intermediates: list,
        trust_store,
        hostname: str,
        reference_time: datetime = None,
    ) -> ChainVerdict:
        leaf = to_x509(leaf)
        intermediates = [to_x509(cert) for cert in intermediates or []]
        now = _utc(reference_time)
        anchors = [anchor.x509 for anchor in trust_store.anchors()]
        current = []
        expired = []
        for anchor in anchors:
            if anchor.not_valid_before_utc <= now <= anchor.not_valid_after_utc:
                current.append(anchor)
            else:
                expired.append(anchor)

        if not anchors:
            return ChainVerdict.untrusted(UntrustedReason.EMPTY_TRUST_STORE)
        if not current:
            if self._relies_on(expired, leaf, intermediates):
                return ChainVerdict.untrusted(UntrustedReason.EXPIRED_ANCHOR)
            return ChainVerdict.untrusted(
                UntrustedReason.EMPTY_TRUST_STORE,
                "no trust anchor is valid at the reference time",
            )

        verifier = (
            PolicyBuilder()
            .store(Store(current))
            .time(now.replace(tzinfo=None))
            .build_server_verifier(DNSName(hostname))
        )
        try:
            path = verifier.verify(leaf, intermediates)
        except VerificationError as err:
            logger.info(f"{hostname} chain verification failed: {err}")
            return self._classify_failure(
                leaf, intermediates, current, expired, hostname, str(err)
            )
        logger.info(
            f"{hostname} chain verified through {len(path)} certificates to {path[-1].subject.rfc4514_string()}"
        )
        return ChainVerdict.valid(
            " > ".join(
                util.from_subject(cert.subject) or cert.subject.rfc4514_string()
                for cert in path
            )
        )

    def validate(
        self,
        chain: RetrievedChain,
        trust_store,
        reference_time: datetime = None,
    ) -> tuple[ChainVerdict, list[ValidationVerdict]]:
        validity = [
            self.check_validity(cert, reference_time) for cert in chain.certificates
        ]
        if chain.insecure:
            logger.warning(
                f"{chain.hostname}:{chain.port} chain was retrieved without verification and is not trusted"
            )
            return (
                ChainVerdict.untrusted(UntrustedReason.RETRIEVED_INSECURELY),
                validity,
            )
        verdict = self.verify_chain(
            chain.leaf,
            chain.intermediates,
            trust_store,
            chain.hostname,
            reference_time,
        )
        return verdict, validity

    def _classify_failure(
        self,
        leaf: x509.Certificate,
        intermediates: list[x509.Certificate],
        current: list[x509.Certificate],
        expired: list[x509.Certificate],
        hostname: str,
        message: str,
    ) -> ChainVerdict:
        if not util.match_hostname(hostname, util.get_san(leaf)):
            return ChainVerdict.untrusted(UntrustedReason.HOSTNAME_MISMATCH, message)
        path = [leaf, *intermediates]
        top = [cert for cert in current if cert.subject == path[-1].issuer]
        if self._path_length_exceeded(path + top[:1]):
            return ChainVerdict.untrusted(
                UntrustedReason.PATH_LENGTH_EXCEEDED, message
            )
        if self._relies_on(expired, leaf, intermediates):
            return ChainVerdict.untrusted(UntrustedReason.EXPIRED_ANCHOR, message)
        return ChainVerdict.untrusted(UntrustedReason.NO_PATH, message)

    @staticmethod
    def _path_length_exceeded(path: list[x509.Certificate]) -> bool:
        for index, cert in enumerate(path):
            if index == 0:
                continue
            _, path_length = util.get_basic_constraints(cert)
            # intermediates below this issuer, excluding the leaf
            if path_length is not None and index - 1 > path_length:
                logger.debug(
                    f"{cert.subject.rfc4514_string()} allows path length {path_length}, found {index - 1}"
                )
                return True
        return False

    @staticmethod
    def _relies_on(
        anchors: list[x509.Certificate],
        leaf: x509.Certificate,
        intermediates: list[x509.Certificate],
    ) -> bool:
        issuers = {cert.issuer for cert in [leaf, *intermediates]}
        return any(anchor.subject in issuers for anchor in anchors)


def check_validity(cert, reference_time: datetime = None) -> ValidationVerdict:
    return ChainValidator().check_validity(cert, reference_time)


def verify_chain(
    leaf, intermediates, trust_store, hostname: str, reference_time: datetime = None
) -> ChainVerdict:
    return ChainValidator().verify_chain(
        leaf, intermediates, trust_store, hostname, reference_time
    )

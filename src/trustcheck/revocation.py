import logging
from datetime import datetime, timedelta, timezone
from typing import Union
from urllib.parse import urlparse

import requests
from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, padding, rsa
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.ocsp import (
    OCSPCertStatus,
    OCSPRequest,
    OCSPRequestBuilder,
    OCSPResponse,
    OCSPResponseStatus,
    OCSPSingleResponse,
    load_der_ocsp_response,
)
from cryptography.x509.oid import ExtendedKeyUsageOID

from . import constants, util
from .certificate import Certificate, to_x509
from .exceptions import OCSPError, OCSPFailure
from .models import RevocationVerdict

__module__ = "trustcheck.revocation"

logger = logging.getLogger(__name__)


class RevocationChecker:
    """Live revocation status of a leaf certificate through its OCSP responder.

    Every call performs exactly one POST to the first responder listed in the
    leaf's Authority Information Access extension. Responses are never cached
    and failed requests are never retried. Anything that prevents a
    trustworthy answer (transport, parsing, CertID binding, signature or
    freshness) yields a CheckFailed verdict, never Good or Unknown.
    """

    request_hash: type = hashes.SHA256

    def __init__(
        self,
        session: requests.Session = None,
        timeout: int = constants.DEFAULT_TIMEOUT,
    ) -> None:
        self._session = session or requests.Session()
        self.timeout = timeout

    def build_request(
        self,
        leaf: Union[Certificate, x509.Certificate],
        issuer: Union[Certificate, x509.Certificate],
        algorithm: hashes.HashAlgorithm = None,
    ) -> OCSPRequest:
        builder = OCSPRequestBuilder().add_certificate(
            to_x509(leaf), to_x509(issuer), algorithm or self.request_hash()
        )
        return builder.build()

    def check_ocsp(
        self,
        leaf: Union[Certificate, x509.Certificate],
        issuer: Union[Certificate, x509.Certificate],
        reference_time: datetime = None,
    ) -> RevocationVerdict:
        leaf = to_x509(leaf)
        issuer = to_x509(issuer)
        urls = util.get_ocsp_urls(leaf)
        if not urls:
            raise OCSPError(
                OCSPFailure.NO_RESPONDER,
                f"certificate {leaf.subject.rfc4514_string()} lists no OCSP responder",
            )
        url = urls[0]
        request = self.build_request(leaf, issuer)
        try:
            response = self._parse(self._send(url, request), url)
            single = self._find_single(response, leaf, issuer, url)
            self._verify_signature(response, issuer, url)
            self._check_freshness(single, url, reference_time)
        except OCSPError as err:
            logger.warning(f"{url} OCSP check failed: {err}")
            return RevocationVerdict.check_failed(err, responder_url=url)

        fields = {
            "responder_url": url,
            "this_update": single.this_update_utc,
            "next_update": single.next_update_utc,
        }
        if single.certificate_status == OCSPCertStatus.GOOD:
            return RevocationVerdict.good(**fields)
        if single.certificate_status == OCSPCertStatus.REVOKED:
            logger.info(
                f"{url} serial {leaf.serial_number:x} revoked at {single.revocation_time_utc}"
            )
            return RevocationVerdict.revoked(
                single.revocation_time_utc,
                revocation_reason=single.revocation_reason.value
                if single.revocation_reason
                else None,
                **fields,
            )
        return RevocationVerdict.unknown(**fields)

    def _send(self, url: str, request: OCSPRequest) -> bytes:
        try:
            resp = self._session.post(
                url,
                data=request.public_bytes(Encoding.DER),
                headers={
                    "Content-Type": constants.OCSP_REQUEST_CONTENT_TYPE,
                    "Accept": constants.OCSP_RESPONSE_CONTENT_TYPE,
                    "Host": urlparse(url).netloc,
                    "User-Agent": constants.USER_AGENT,
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as err:
            raise OCSPError(
                OCSPFailure.TRANSPORT, f"responder unreachable: {err}", url
            ) from err
        if resp.status_code != 200:
            raise OCSPError(
                OCSPFailure.HTTP_STATUS,
                f"responder returned HTTP {resp.status_code}",
                url,
            )
        return resp.content

    @staticmethod
    def _parse(body: bytes, url: str) -> OCSPResponse:
        try:
            response = load_der_ocsp_response(body)
        except ValueError as err:
            raise OCSPError(
                OCSPFailure.MALFORMED, f"response could not be parsed: {err}", url
            ) from err
        if response.response_status != OCSPResponseStatus.SUCCESSFUL:
            raise OCSPError(
                OCSPFailure.UNSUCCESSFUL,
                f"response status {response.response_status.name}",
                url,
            )
        return response

    def _find_single(
        self,
        response: OCSPResponse,
        leaf: x509.Certificate,
        issuer: x509.Certificate,
        url: str,
    ) -> OCSPSingleResponse:
        for single in response.responses:
            if single.serial_number != leaf.serial_number:
                continue
            try:
                expected = self.build_request(leaf, issuer, single.hash_algorithm)
            except (ValueError, UnsupportedAlgorithm) as ex:
                logger.debug(ex, exc_info=True)
                continue
            if (
                single.issuer_name_hash == expected.issuer_name_hash
                and single.issuer_key_hash == expected.issuer_key_hash
            ):
                return single
        raise OCSPError(
            OCSPFailure.CERT_MISMATCH,
            f"no response for serial {leaf.serial_number:x} issued by {issuer.subject.rfc4514_string()}",
            url,
        )

    @staticmethod
    def _is_responder(response: OCSPResponse, cert: x509.Certificate) -> bool:
        if response.responder_name is not None:
            return response.responder_name == cert.subject
        return (
            response.responder_key_hash
            == x509.SubjectKeyIdentifier.from_public_key(cert.public_key()).digest
        )

    def _responder_certificate(
        self, response: OCSPResponse, issuer: x509.Certificate, url: str
    ) -> x509.Certificate:
        if self._is_responder(response, issuer):
            return issuer
        for cert in response.certificates:
            if not self._is_responder(response, cert):
                continue
            if not util.is_issued_by(cert, issuer):
                raise OCSPError(
                    OCSPFailure.SIGNATURE,
                    "delegated responder certificate is not issued by the certificate issuer",
                    url,
                )
            try:
                usages = cert.extensions.get_extension_for_class(
                    x509.ExtendedKeyUsage
                ).value
            except x509.ExtensionNotFound:
                usages = []
            if ExtendedKeyUsageOID.OCSP_SIGNING not in usages:
                raise OCSPError(
                    OCSPFailure.SIGNATURE,
                    "delegated responder certificate is not authorized for OCSP signing",
                    url,
                )
            return cert
        raise OCSPError(
            OCSPFailure.SIGNATURE, "responder certificate could not be identified", url
        )

    def _verify_signature(
        self, response: OCSPResponse, issuer: x509.Certificate, url: str
    ) -> None:
        responder = self._responder_certificate(response, issuer, url)
        public_key = responder.public_key()
        try:
            if isinstance(public_key, rsa.RSAPublicKey):
                public_key.verify(
                    response.signature,
                    response.tbs_response_bytes,
                    padding.PKCS1v15(),
                    response.signature_hash_algorithm,
                )
            elif isinstance(public_key, ec.EllipticCurvePublicKey):
                public_key.verify(
                    response.signature,
                    response.tbs_response_bytes,
                    ec.ECDSA(response.signature_hash_algorithm),
                )
            elif isinstance(
                public_key, (ed25519.Ed25519PublicKey, ed448.Ed448PublicKey)
            ):
                public_key.verify(response.signature, response.tbs_response_bytes)
            else:
                raise OCSPError(
                    OCSPFailure.SIGNATURE,
                    f"unsupported responder key type {type(public_key).__name__}",
                    url,
                )
        except InvalidSignature as err:
            raise OCSPError(
                OCSPFailure.SIGNATURE, "response signature is invalid", url
            ) from err

    @staticmethod
    def _check_freshness(
        single: OCSPSingleResponse, url: str, reference_time: datetime = None
    ) -> None:
        now = reference_time or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        skew = timedelta(seconds=constants.OCSP_CLOCK_SKEW_SECONDS)
        if single.this_update_utc > now + skew:
            raise OCSPError(
                OCSPFailure.STALE,
                f"thisUpdate {single.this_update_utc.isoformat()} is in the future",
                url,
            )
        if single.next_update_utc is not None and single.next_update_utc < now - skew:
            raise OCSPError(
                OCSPFailure.STALE,
                f"nextUpdate {single.next_update_utc.isoformat()} has passed",
                url,
            )


def check_ocsp(
    leaf, issuer, session: requests.Session = None, timeout: int = None
) -> RevocationVerdict:
    return RevocationChecker(
        session, timeout or constants.DEFAULT_TIMEOUT
    ).check_ocsp(leaf, issuer)

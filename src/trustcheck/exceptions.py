from enum import Enum
from typing import Union

__module__ = "trustcheck.exceptions"

X509_V_ERR_UNABLE_TO_GET_ISSUER_CERT = 2
X509_V_ERR_UNABLE_TO_DECRYPT_CERT_SIGNATURE = 4
X509_V_ERR_UNABLE_TO_DECODE_ISSUER_PUBLIC_KEY = 6
X509_V_ERR_CERT_SIGNATURE_FAILURE = 7
X509_V_ERR_CERT_NOT_YET_VALID = 9
X509_V_ERR_CERT_HAS_EXPIRED = 10
X509_V_ERR_ERROR_IN_CERT_NOT_BEFORE_FIELD = 13
X509_V_ERR_ERROR_IN_CERT_NOT_AFTER_FIELD = 14
X509_V_ERR_DEPTH_ZERO_SELF_SIGNED_CERT = 18
X509_V_ERR_SELF_SIGNED_CERT_IN_CHAIN = 19
X509_V_ERR_UNABLE_TO_GET_ISSUER_CERT_LOCALLY = 20
X509_V_ERR_UNABLE_TO_VERIFY_LEAF_SIGNATURE = 21
X509_V_ERR_CERT_REVOKED = 23
X509_V_ERR_INVALID_CA = 24
X509_V_ERR_PATH_LENGTH_EXCEEDED = 25
X509_V_ERR_INVALID_PURPOSE = 26
X509_V_ERR_CERT_UNTRUSTED = 27
X509_V_ERR_CERT_REJECTED = 28
X509_V_ERR_KEYUSAGE_NO_CERTSIGN = 32
X509_V_ERR_HOSTNAME_MISMATCH = 62
X509_MESSAGES = {
    2: "unable to get issuer certificate, the issuer certificate of a looked up certificate could not be found. This normally means the list of trusted certificates is not complete.",
    4: "unable to decrypt certificate's signature, the certificate signature could not be decrypted.",
    6: "unable to decode issuer public key, the public key in the certificate SubjectPublicKeyInfo could not be read.",
    7: "certificate signature failure, the signature of the certificate is invalid.",
    9: "certificate is not yet valid, the notBefore date is after the current time.",
    10: "certificate has expired, the notAfter date is before the current time.",
    13: "format error in certificate's notBefore field, the certificate notBefore field contains an invalid time.",
    14: "format error in certificate's notAfter field, the certificate notAfter field contains an invalid time.",
    18: "self signed certificate, the passed certificate is self signed and the same certificate cannot be found in the list of trusted certificates",
    19: "self signed certificate in certificate chain, the certificate chain could be built up using the untrusted certificates but the root could not be found locally.",
    20: "unable to get local issuer certificate, the issuer certificate could not be found: this occurs if the issuer certificate of an untrusted certificate cannot be found.",
    21: "unable to verify the first certificate, no signatures could be verified because the chain contains only one certificate and it is not self signed.",
    23: "certificate revoked, the certificate has been revoked.",
    24: "invalid CA certificate, a CA certificate is invalid. Either it is not a CA or its extensions are not consistent with the supplied purpose.",
    25: "path length constraint exceeded, the basicConstraints pathlength parameter has been exceeded.",
    26: "unsupported certificate purpose, the supplied certificate cannot be used for the specified purpose.",
    27: "certificate not trusted, the root CA is not marked as trusted for the specified purpose.",
    28: "certificate rejected, the root CA is marked to reject the specified purpose.",
    32: "key usage does not include certificate signing, the candidate issuer certificate keyUsage extension does not permit certificate signing.",
    62: "hostname mismatch, the certificate is not valid for the requested hostname.",
}

CONNECT_ERROR_TLS_FAILED = "Unable to negotiate a TLS socket connection with server at {host}:{port} to obtain the Certificate"
CONNECT_ERROR_NO_CERTIFICATES = "Server at {host}:{port} completed the handshake without presenting any certificates"
CONNECT_ERROR_HOSTNAME = "Certificate presented by {host}:{port} does not match hostname {host}"


class ConnectCause(str, Enum):
    DNS = "dns"
    TIMEOUT = "timeout"
    REFUSED = "refused"
    NETWORK = "network"
    HANDSHAKE = "handshake"
    UNTRUSTED = "untrusted"
    NO_CERTIFICATES = "no_certificates"


class OCSPFailure(str, Enum):
    NO_RESPONDER = "no_responder"
    NO_ISSUER = "no_issuer"
    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"
    MALFORMED = "malformed"
    UNSUCCESSFUL = "unsuccessful"
    CERT_MISMATCH = "cert_mismatch"
    SIGNATURE = "signature"
    STALE = "stale"


class TrustCheckError(Exception):
    pass


class ParseError(TrustCheckError, ValueError):
    """Malformed certificate data or feed row, callers skip and continue"""


class FetchError(TrustCheckError, ConnectionError):
    """Used when a trust source or OCSP responder could not be retrieved"""

    def __init__(self, message: str, url: str = None) -> None:
        super().__init__(message)
        self.url = url


class ConnectError(TrustCheckError, ConnectionError):
    def __init__(
        self,
        message: str = None,
        hostname: str = None,
        port: int = None,
        cause: ConnectCause = ConnectCause.NETWORK,
        openssl_errno: int = None,
    ) -> None:
        if message is None:
            message = CONNECT_ERROR_TLS_FAILED.format(host=hostname, port=port)
        if openssl_errno in X509_MESSAGES.keys():
            message += "\n" + X509_MESSAGES[openssl_errno]
        super().__init__(message)
        self.hostname = hostname
        self.port = port
        self.cause = cause
        self.openssl_errno = openssl_errno

    @property
    def is_tls_failure(self) -> bool:
        return self.cause in [ConnectCause.HANDSHAKE, ConnectCause.UNTRUSTED]


class OCSPError(TrustCheckError):
    def __init__(
        self, reason: OCSPFailure, message: Union[str, None] = None, url: str = None
    ) -> None:
        super().__init__(message or reason.value.replace("_", " "))
        self.reason = reason
        self.url = url

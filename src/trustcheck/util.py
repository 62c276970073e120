import logging
import re
from binascii import hexlify
from datetime import datetime, timezone
from urllib.parse import urlparse
from typing import Union

import validators
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.x509 import (
    Certificate,
    DNSName,
    Name,
    NameOID,
    SubjectAlternativeName,
    extensions,
)
from cryptography.x509.oid import AuthorityInformationAccessOID

from . import constants

__module__ = "trustcheck.util"

logger = logging.getLogger(__name__)
PEM_BLOCK = re.compile(
    f"{re.escape(constants.PEM_BEGIN_CERTIFICATE)}.*?{re.escape(constants.PEM_END_CERTIFICATE)}",
    re.DOTALL,
)


def force_str(s, encoding="utf-8", errors="strict") -> str:
    if issubclass(type(s), str):
        return s
    if isinstance(s, (bytes, bytearray)):
        return str(s, encoding, errors)
    return str(s)


def split_pem_blocks(data: Union[bytes, str]) -> list[str]:
    return PEM_BLOCK.findall(force_str(data, errors="replace"))


def is_valid_hostname(hostname: str) -> bool:
    if not isinstance(hostname, str) or not hostname:
        return False
    return hostname == "localhost" or validators.domain(hostname) is True


def parse_target(target: str, default_port: int = constants.DEFAULT_PORT) -> tuple[str, int]:
    if not isinstance(target, str) or not target.strip():
        raise ValueError("Missing hostname")
    target = target.strip()
    if not target.startswith("http"):
        target = f"https://{target}"
    parsed = urlparse(target)
    if not is_valid_hostname(parsed.hostname):
        raise ValueError(f"URL {target} hostname {parsed.hostname} is invalid")
    return parsed.hostname, parsed.port or default_port


def from_subject(subject: Name, field=NameOID.COMMON_NAME) -> Union[str, None]:
    for attribute in subject.get_attributes_for_oid(field):
        return attribute.value
    return None


def get_san(cert: Certificate) -> list[str]:
    san = []
    try:
        san = cert.extensions.get_extension_for_class(
            SubjectAlternativeName
        ).value.get_values_for_type(DNSName)
    except extensions.ExtensionNotFound as ex:
        logger.debug(ex, exc_info=True)
    return san


def get_basic_constraints(cert: Certificate) -> tuple[bool, int]:
    basic_constraints = None
    try:
        basic_constraints = cert.extensions.get_extension_for_class(
            extensions.BasicConstraints
        ).value
    except extensions.ExtensionNotFound as ex:
        logger.debug(ex, exc_info=True)
    if not isinstance(basic_constraints, extensions.BasicConstraints):
        return None, None
    return basic_constraints.ca, basic_constraints.path_length


def get_ocsp_urls(cert: Certificate) -> list[str]:
    try:
        ext = cert.extensions.get_extension_for_class(
            extensions.AuthorityInformationAccess
        )
    except extensions.ExtensionNotFound:
        return []
    urls = []
    for desc in ext.value:
        if desc.access_method != AuthorityInformationAccessOID.OCSP:
            continue
        if isinstance(desc.access_location, x509.UniformResourceIdentifier):
            if desc.access_location.value not in urls:
                urls.append(desc.access_location.value)
    return urls


def get_crl_urls(cert: Certificate) -> list[str]:
    try:
        ext = cert.extensions.get_extension_for_class(extensions.CRLDistributionPoints)
    except extensions.ExtensionNotFound:
        return []
    urls = []
    for point in ext.value:
        for name in point.full_name or []:
            if isinstance(name, x509.UniformResourceIdentifier):
                urls.append(name.value)
    return urls


def get_key_identifier_hex(
    cert: Certificate, extension=extensions.SubjectKeyIdentifier
) -> Union[str, None]:
    try:
        value = cert.extensions.get_extension_for_class(extension).value
    except extensions.ExtensionNotFound as ex:
        logger.debug(ex, exc_info=True)
        return None
    digest = (
        value.digest
        if isinstance(value, extensions.SubjectKeyIdentifier)
        else value.key_identifier
    )
    return hexlify(digest).decode("utf-8") if digest else None


def is_self_signed(cert: Certificate) -> bool:
    if cert.issuer != cert.subject:
        return False
    ski = get_key_identifier_hex(cert, extensions.SubjectKeyIdentifier)
    aki = get_key_identifier_hex(cert, extensions.AuthorityKeyIdentifier)
    return aki is None or ski is None or aki == ski


def is_issued_by(cert: Certificate, issuer: Certificate) -> bool:
    if cert.issuer != issuer.subject:
        return False
    try:
        cert.verify_directly_issued_by(issuer)
    except (InvalidSignature, ValueError, TypeError) as ex:
        logger.debug(ex, exc_info=True)
        return False
    return True


def issuer_from_chain(certificate: Certificate, chain: list[Certificate]) -> Union[Certificate, None]:
    for peer in chain:
        if peer is certificate:
            continue
        if is_issued_by(certificate, peer):
            return peer
    return None


def validate_dns_name(dns_name: str, host: str) -> bool:
    dns_name = dns_name.lower().rstrip(".")
    host = host.lower().rstrip(".")
    if not dns_name.startswith("*."):
        return dns_name == host
    wildcard_suffix = dns_name[2:]
    if not host.endswith(f".{wildcard_suffix}"):
        return False
    # remove suffix, only subdomain remains
    subdomain = host[: -len(wildcard_suffix) - 1]
    return bool(subdomain) and "." not in subdomain


def match_hostname(host: str, dns_names: list[str]) -> bool:
    if not isinstance(host, str) or not host:
        raise ValueError("invalid host provided")
    return any(validate_dns_name(name, host) for name in dns_names)


def date_diff(comparer: datetime) -> str:
    interval = comparer - datetime.now(timezone.utc)
    if interval.days < -1:
        return f"Expired {int(abs(interval.days))} days ago"
    if interval.days == -1:
        return "Expired yesterday"
    if interval.days == 0:
        return "Expires today"
    if interval.days == 1:
        return "Expires tomorrow"
    if interval.days > 365:
        return (
            f"Expires in {interval.days} days ({int(round(interval.days/365))} years)"
        )
    return f"Expires in {interval.days} days"

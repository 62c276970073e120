import csv
import io
import logging
from pathlib import Path
from typing import Union

import requests
from cryptography import x509

from . import constants, util
from .certificate import TrustAnchor
from .exceptions import FetchError, ParseError
from .models import Seed, SeedSource

__module__ = "trustcheck.trust"

logger = logging.getLogger(__name__)


def unwrap_feed_field(value: str) -> str:
    """Strip exactly one leading and one trailing quote character, if present"""
    if value[:1] in constants.FEED_QUOTE_CHARS:
        value = value[1:]
    if value[-1:] in constants.FEED_QUOTE_CHARS:
        value = value[:-1]
    return value


class TrustAnchorStore:
    def __init__(self) -> None:
        self._anchors: list[TrustAnchor] = []
        self.failures: list[tuple[Seed, Exception]] = []

    def __len__(self) -> int:
        return len(self._anchors)

    def __iter__(self):
        return iter(self.anchors())

    def anchors(self) -> tuple[TrustAnchor, ...]:
        return tuple(self._anchors)

    def add_pem(self, data: Union[bytes, str]) -> int:
        blocks = util.split_pem_blocks(data)
        if not blocks:
            raise ParseError("no PEM certificate block found")
        added = 0
        for block in blocks:
            try:
                anchor = TrustAnchor(x509.load_pem_x509_certificate(block.encode()))
            except ValueError as ex:
                logger.warning(f"skipping malformed certificate block: {ex}")
                continue
            logger.debug(
                f"SHA1:{anchor.sha1_fingerprint} added trust anchor {anchor.subject}"
            )
            self._anchors.append(anchor)
            added += 1
        if added == 0:
            raise ParseError(f"none of the {len(blocks)} PEM blocks could be parsed")
        return added

    def add_bootstrap(self) -> int:
        return self.add_pem(constants.BOOTSTRAP_ROOT_CA)

    def add_file(self, path: Union[str, Path]) -> int:
        try:
            data = Path(path).read_bytes()
        except OSError as ex:
            raise FetchError(f"unable to read CA bundle {path}: {ex}", url=str(path)) from ex
        return self.add_pem(data)

    def add_from_feed(
        self,
        url: str = constants.CCADB_FEED_URL,
        session: requests.Session = None,
        timeout: int = constants.DEFAULT_TIMEOUT,
    ) -> int:
        session = session or requests.Session()
        logger.info(f"fetching trust anchors from {url}")
        try:
            resp = session.get(
                url, headers={"User-Agent": constants.USER_AGENT}, timeout=timeout
            )
        except requests.exceptions.RequestException as err:
            raise FetchError(f"unable to fetch trust feed: {err}", url=url) from err
        if not 200 <= resp.status_code < 300:
            raise FetchError(
                f"trust feed returned HTTP {resp.status_code}", url=url
            )
        return self._add_feed_rows(resp.text)

    def _add_feed_rows(self, body: str) -> int:
        reader = csv.reader(io.StringIO(body), strict=False)
        added = 0
        line = 0
        while True:
            line += 1
            try:
                row = next(reader)
            except StopIteration:
                break
            except csv.Error as ex:
                logger.warning(f"trust feed row {line} could not be decoded: {ex}")
                continue
            if not row:
                continue
            try:
                added += self.add_pem(unwrap_feed_field(row[0]))
            except ParseError as ex:
                logger.debug(f"trust feed row {line} skipped: {ex}")
        logger.info(f"added {added} trust anchors from feed")
        return added


def assemble(
    seeds: list[Seed],
    session: requests.Session = None,
    timeout: int = constants.DEFAULT_TIMEOUT,
) -> TrustAnchorStore:
    store = TrustAnchorStore()
    for seed in seeds:
        try:
            if seed.kind == SeedSource.BOOTSTRAP:
                store.add_bootstrap()
            elif seed.kind == SeedSource.FEED:
                store.add_from_feed(
                    seed.location or constants.CCADB_FEED_URL,
                    session=session,
                    timeout=timeout,
                )
            elif seed.kind == SeedSource.FILE:
                store.add_file(seed.location)
            else:
                raise ValueError(f"unsupported seed kind {seed.kind}")
        except (FetchError, ParseError) as err:
            logger.error(f"trust source {seed.kind.value} {seed.location or ''} failed: {err}")
            store.failures.append((seed, err))
    logger.info(f"trust store assembled with {len(store)} anchors")
    return store

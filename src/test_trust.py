from unittest.mock import Mock

import pytest
import requests

from trustcheck import constants
from trustcheck.certificate import TrustAnchor
from trustcheck.exceptions import FetchError, ParseError
from trustcheck.models import Seed, SeedSource
from trustcheck.trust import TrustAnchorStore, assemble, unwrap_feed_field
from conftest import make_certificate, make_key, pem


def _root(name: str):
    return make_certificate(name, make_key(), ca=True)


def _feed_session(body: str, status_code: int = 200) -> Mock:
    session = Mock()
    session.get.return_value = Mock(status_code=status_code, text=body)
    return session


def test_add_pem_single():
    root = _root("Single Root")
    store = TrustAnchorStore()
    assert store.add_pem(pem(root)) == 1
    assert len(store) == 1
    assert isinstance(store.anchors()[0], TrustAnchor)
    assert store.anchors()[0].x509 == root


def test_add_pem_bundle_skips_bad_blocks():
    first, second = _root("First Root"), _root("Second Root")
    broken = f"{constants.PEM_BEGIN_CERTIFICATE}\nbm90IGEgY2VydGlmaWNhdGU=\n{constants.PEM_END_CERTIFICATE}\n"
    store = TrustAnchorStore()
    assert store.add_pem(pem(first) + broken + pem(second)) == 2
    assert [a.x509 for a in store.anchors()] == [first, second]


def test_add_pem_no_blocks():
    store = TrustAnchorStore()
    with pytest.raises(ParseError):
        store.add_pem("PEM Info")
    assert len(store) == 0


def test_add_pem_only_bad_blocks():
    store = TrustAnchorStore()
    with pytest.raises(ParseError):
        store.add_pem(
            f"{constants.PEM_BEGIN_CERTIFICATE}\nAAAA\n{constants.PEM_END_CERTIFICATE}"
        )


def test_duplicates_are_kept():
    root = _root("Duplicate Root")
    store = TrustAnchorStore()
    store.add_pem(pem(root))
    store.add_pem(pem(root))
    assert len(store) == 2


def test_anchors_is_a_snapshot():
    store = TrustAnchorStore()
    store.add_pem(pem(_root("Snapshot Root")))
    snapshot = store.anchors()
    store.add_pem(pem(_root("Later Root")))
    assert isinstance(snapshot, tuple)
    assert len(snapshot) == 1
    assert len(store.anchors()) == 2


def test_add_bootstrap():
    store = TrustAnchorStore()
    assert store.add_bootstrap() == 1
    assert store.anchors()[0].subject_common_name == "DigiCert Global Root CA"


@pytest.mark.parametrize(
    "value,expected",
    [
        ("'abc'", "abc"),
        ('"abc"', "abc"),
        ("'abc", "abc"),
        ("abc'", "abc"),
        ("''abc''", "'abc'"),
        ("abc", "abc"),
        ("", ""),
    ],
)
def test_unwrap_feed_field(value, expected):
    assert unwrap_feed_field(value) == expected


def test_add_from_feed():
    first, second = _root("Feed Root One"), _root("Feed Root Two")
    body = f"PEM Info,Name\n\"'{pem(first)}'\",One\n\"'{pem(second)}'\",Two\n"
    session = _feed_session(body)
    store = TrustAnchorStore()
    assert store.add_from_feed("https://feed.test/roots.csv", session=session) == 2
    assert [a.x509 for a in store.anchors()] == [first, second]
    args, kwargs = session.get.call_args
    assert args[0] == "https://feed.test/roots.csv"
    assert kwargs["timeout"] == constants.DEFAULT_TIMEOUT


def test_add_from_feed_odd_quotes_do_not_abort():
    first, second, third = (
        _root("Quoted Root One"),
        _root("Quoted Root Two"),
        _root("Quoted Root Three"),
    )
    body = (
        "PEM Info,Name\n"
        f"\"'{pem(first)}'\",One\n"
        'oops "half quoted,Broken\n'
        f"\"'{pem(second)}'\",Two\n"
        f"\"'{pem(third)}"
    )
    store = TrustAnchorStore()
    added = store.add_from_feed(session=_feed_session(body))
    anchors = [a.x509 for a in store.anchors()]
    assert first in anchors
    assert second in anchors
    assert added in (2, 3)
    assert len(store) == added


def test_add_from_feed_http_error():
    store = TrustAnchorStore()
    with pytest.raises(FetchError) as err:
        store.add_from_feed("https://feed.test/roots.csv", session=_feed_session("", 503))
    assert err.value.url == "https://feed.test/roots.csv"
    assert len(store) == 0


def test_add_from_feed_unreachable():
    session = Mock()
    session.get.side_effect = requests.exceptions.ConnectTimeout("timed out")
    with pytest.raises(FetchError):
        TrustAnchorStore().add_from_feed(session=session)


def test_add_file(tmp_path):
    bundle = tmp_path / "bundle.pem"
    bundle.write_text(pem(_root("File Root One")) + pem(_root("File Root Two")))
    store = TrustAnchorStore()
    assert store.add_file(bundle) == 2


def test_add_file_missing(tmp_path):
    with pytest.raises(FetchError):
        TrustAnchorStore().add_file(tmp_path / "missing.pem")


def test_assemble_continues_after_failed_feed():
    session = Mock()
    session.get.side_effect = requests.exceptions.ConnectionError("unreachable")
    feed = Seed(SeedSource.FEED, "https://feed.test/roots.csv")
    store = assemble([Seed(SeedSource.BOOTSTRAP), feed], session=session, timeout=1)
    assert len(store) == 1
    assert len(store.failures) == 1
    seed, err = store.failures[0]
    assert seed == feed
    assert isinstance(err, FetchError)


def test_assemble_order(tmp_path):
    bundle = tmp_path / "bundle.pem"
    root = _root("Ordered Root")
    bundle.write_text(pem(root))
    store = assemble([Seed(SeedSource.FILE, str(bundle)), Seed(SeedSource.BOOTSTRAP)])
    assert store.anchors()[0].x509 == root
    assert store.anchors()[1].subject_common_name == "DigiCert Global Root CA"
    assert store.failures == []

"""Message update state machine and gossip processor tests.

What:
  Drive :func:`process_incoming` with raw messages through the standard
  library adapter and with :class:`FakeHost` for unusual part shapes.

Why:
  These paths turn attacker-controlled headers into stored trust state; the
  tests pin down anti-spoofing, monotonicity, deactivation and the silent
  failure behaviour of gossip.
"""
from __future__ import annotations

import io
from datetime import timedelta

from fakes import NOW, FakeHost, autocrypt_value, host_for, key_bytes

from mailac.core.gossip import extract_gossip, process_gossip
from mailac.core.peers import Account, PeerRecord, PeerStore, Preference
from mailac.core.update import UpdateAction, message_date, process_incoming
from mailac.host.base import BufferPart, FilePart, TextPart

BOB = "bob@example.org"
CAROL = "carol@example.org"
ME = "me@example.org"


def _process(store: PeerStore, **kwargs):
    gossip_enabled = kwargs.pop("gossip_enabled", True)
    return process_incoming(store, host_for(**kwargs), gossip_enabled=gossip_enabled, now=NOW)


def test_first_message_creates_peer(store: PeerStore) -> None:
    key = key_bytes(1)
    outcome = _process(
        store,
        sender="Bob <Bob@Example.org>",
        autocrypt=[autocrypt_value(BOB, key, Preference.MUTUAL)],
    )
    assert outcome.action is UpdateAction.UPDATED
    assert outcome.created
    record = store.lookup_peer(BOB)
    assert record.public_key == key
    assert record.preference is Preference.MUTUAL
    assert record.timestamp == NOW
    assert record.last_seen == NOW
    assert not record.deactivated


def test_header_without_preference_defaults_to_none(store: PeerStore) -> None:
    _process(store, sender=BOB, autocrypt=[autocrypt_value(BOB, key_bytes(1))])
    assert store.lookup_peer(BOB).preference is Preference.NONE


def test_stale_message_only_raises_last_seen(store: PeerStore) -> None:
    store.upsert_peer(
        PeerRecord(
            address=BOB,
            last_seen=NOW - timedelta(days=5),
            timestamp=NOW - timedelta(days=2),
            public_key=b"current",
            preference=Preference.MUTUAL,
        )
    )
    outcome = _process(
        store,
        sender=BOB,
        date=NOW - timedelta(days=3),
        autocrypt=[autocrypt_value(BOB, b"older", Preference.NOPREFERENCE)],
    )
    assert outcome.action is UpdateAction.STALE
    record = store.lookup_peer(BOB)
    assert record.public_key == b"current"
    assert record.preference is Preference.MUTUAL
    assert record.timestamp == NOW - timedelta(days=2)
    assert record.last_seen == NOW - timedelta(days=3)


def test_stale_message_without_header_does_not_deactivate(store: PeerStore) -> None:
    store.upsert_peer(PeerRecord(address=BOB, last_seen=NOW, timestamp=NOW, public_key=b"k"))
    outcome = _process(store, sender=BOB, date=NOW - timedelta(days=1))
    assert outcome.action is UpdateAction.STALE
    assert not store.lookup_peer(BOB).deactivated


def test_missing_header_deactivates_known_peer(store: PeerStore) -> None:
    earlier = NOW - timedelta(days=1)
    store.upsert_peer(
        PeerRecord(address=BOB, last_seen=earlier, timestamp=earlier, public_key=b"k", preference=Preference.MUTUAL)
    )
    outcome = _process(store, sender=BOB)
    assert outcome.action is UpdateAction.DEACTIVATED
    record = store.lookup_peer(BOB)
    assert record.deactivated
    assert record.public_key == b"k"
    assert record.timestamp == earlier
    assert record.last_seen == NOW


def test_valid_header_reactivates(store: PeerStore) -> None:
    earlier = NOW - timedelta(days=1)
    store.upsert_peer(PeerRecord(address=BOB, last_seen=earlier, timestamp=earlier, public_key=b"k", deactivated=True))
    _process(store, sender=BOB, autocrypt=[autocrypt_value(BOB, b"fresh")])
    record = store.lookup_peer(BOB)
    assert not record.deactivated
    assert record.public_key == b"fresh"


def test_header_for_other_address_is_discarded(store: PeerStore) -> None:
    store.upsert_peer(PeerRecord(address=BOB, last_seen=NOW - timedelta(days=1), timestamp=NOW - timedelta(days=1), public_key=b"k"))
    outcome = _process(store, sender=BOB, autocrypt=[autocrypt_value("mallory@evil.example", b"evil")])
    assert outcome.action is UpdateAction.DISCARDED
    record = store.lookup_peer(BOB)
    assert record.public_key == b"k"
    assert not record.deactivated
    assert record.last_seen == NOW
    assert store.lookup_peer("mallory@evil.example") is None


def test_malformed_header_is_discarded(store: PeerStore) -> None:
    outcome = _process(store, sender=BOB, autocrypt=["addr=bob@example.org; evil=1; keydata=aGVsbG8="])
    assert outcome.action is UpdateAction.DISCARDED
    record = store.lookup_peer(BOB)
    assert record.public_key is None
    assert not record.deactivated


def test_multiple_headers_for_sender_are_discarded(store: PeerStore) -> None:
    outcome = _process(
        store,
        sender=BOB,
        autocrypt=[autocrypt_value(BOB, b"one"), autocrypt_value(BOB, b"two")],
    )
    assert outcome.action is UpdateAction.DISCARDED
    assert store.lookup_peer(BOB).public_key is None


def test_report_messages_and_own_accounts_are_ignored(store: PeerStore) -> None:
    outcome = _process(
        store,
        sender=BOB,
        content_type='multipart/report; report-type="delivery-status"; boundary="x"',
        autocrypt=[autocrypt_value(BOB, b"k")],
    )
    assert outcome.action is UpdateAction.IGNORED
    assert store.lookup_peer(BOB) is None

    store.add_account(Account(address=ME, key_fingerprint="FP"))
    outcome = _process(store, sender=ME, to=[BOB], autocrypt=[autocrypt_value(ME, b"mine")])
    assert outcome.action is UpdateAction.IGNORED
    assert store.lookup_peer(ME) is None


def test_message_date_handling() -> None:
    assert message_date(None, NOW) == NOW
    assert message_date("not a date", NOW) == NOW
    assert message_date("Mon, 19 Oct 2026 14:00:00 +0200", NOW) == NOW
    future = message_date("Tue, 20 Oct 2026 12:00:00 +0000", NOW)
    assert future == NOW
    past = message_date("Sun, 18 Oct 2026 12:00:00 +0000", NOW)
    assert past == NOW - timedelta(days=1)


def test_gossip_creates_stub_for_recipients(store: PeerStore) -> None:
    outcome = _process(
        store,
        sender=BOB,
        to=[ME, CAROL],
        autocrypt=[autocrypt_value(BOB, b"bob")],
        gossip=[
            autocrypt_value(CAROL, b"carol-key", gossip=True),
            autocrypt_value("stranger@example.org", b"s", gossip=True),
            "addr=broken@example.org; nope=1; keydata=aGVsbG8=",
        ],
    )
    assert outcome.gossip == [CAROL]
    carol = store.lookup_peer(CAROL)
    assert carol.gossip_key == b"carol-key"
    assert carol.gossip_timestamp == NOW
    assert carol.public_key is None
    assert carol.last_seen is None
    assert not carol.deactivated
    assert store.lookup_peer("stranger@example.org") is None
    assert store.lookup_peer(BOB).public_key == b"bob"


def test_gossip_only_replaces_older_gossip(store: PeerStore) -> None:
    store.upsert_peer(
        PeerRecord(address=CAROL, last_seen=NOW, timestamp=NOW, public_key=b"direct", gossip_timestamp=NOW, gossip_key=b"g1")
    )
    _process(
        store,
        sender=BOB,
        to=[CAROL],
        date=NOW - timedelta(days=1),
        gossip=[autocrypt_value(CAROL, b"g0", gossip=True)],
    )
    assert store.lookup_peer(CAROL).gossip_key == b"g1"


def test_gossip_updates_existing_without_touching_direct_fields(store: PeerStore) -> None:
    earlier = NOW - timedelta(days=3)
    store.upsert_peer(
        PeerRecord(
            address=CAROL,
            last_seen=earlier,
            timestamp=earlier,
            public_key=b"direct",
            preference=Preference.MUTUAL,
            gossip_timestamp=earlier,
            gossip_key=b"g-old",
        )
    )
    _process(store, sender=BOB, to=[CAROL], gossip=[autocrypt_value(CAROL, b"g-new", gossip=True)])
    carol = store.lookup_peer(CAROL)
    assert carol.gossip_key == b"g-new"
    assert carol.gossip_timestamp == NOW
    assert carol.public_key == b"direct"
    assert carol.preference is Preference.MUTUAL
    assert carol.last_seen == earlier


def test_gossip_disabled_skips_step(store: PeerStore) -> None:
    _process(
        store,
        sender=BOB,
        to=[CAROL],
        gossip=[autocrypt_value(CAROL, b"g", gossip=True)],
        gossip_enabled=False,
    )
    assert store.lookup_peer(CAROL) is None


def test_gossip_reads_buffer_and_file_parts(store: PeerStore, tmp_path) -> None:
    block = f"Autocrypt-Gossip: {autocrypt_value(CAROL, b'from-part', gossip=True)}\nSubject: x\n\nbody\n"
    headers = {"To": [CAROL]}

    assert process_gossip(store, FakeHost(headers, BufferPart(io.BytesIO(block.encode()))), NOW) == [CAROL]
    store.forget_peer(CAROL)
    assert process_gossip(store, FakeHost(headers, BufferPart(io.StringIO(block))), NOW) == [CAROL]
    store.forget_peer(CAROL)

    path = tmp_path / "part.eml"
    path.write_text(block)
    assert process_gossip(store, FakeHost(headers, FilePart(path)), NOW) == [CAROL]
    assert store.lookup_peer(CAROL).gossip_key == b"from-part"
    assert [entry.address for entry in extract_gossip(TextPart(block))] == [CAROL]


def test_gossip_unsupported_part_is_silent(store: PeerStore, tmp_path) -> None:
    headers = {"To": [CAROL]}
    assert process_gossip(store, FakeHost(headers, object()), NOW) == []
    assert process_gossip(store, FakeHost(headers, None), NOW) == []
    assert process_gossip(store, FakeHost(headers, FilePart(tmp_path / "missing.eml")), NOW) == []
    assert len(store) == 0


def test_unsupported_part_does_not_block_direct_update(store: PeerStore) -> None:
    host = FakeHost(
        {
            "From": [BOB],
            "To": [CAROL],
            "Date": ["Mon, 19 Oct 2026 12:00:00 +0000"],
            "Autocrypt": [autocrypt_value(BOB, b"bob")],
        },
        part=object(),
    )
    outcome = process_incoming(store, host, now=NOW)
    assert outcome.action is UpdateAction.UPDATED
    assert outcome.gossip == []
    assert store.lookup_peer(BOB).public_key == b"bob"


def test_gossip_about_own_account_creates_no_peer(store: PeerStore) -> None:
    store.add_account(Account(address=ME, key_fingerprint="FP"))
    outcome = _process(
        store,
        sender=BOB,
        to=[ME, CAROL],
        gossip=[
            autocrypt_value(ME, b"mine", gossip=True),
            autocrypt_value(CAROL, b"carol-key", gossip=True),
        ],
    )
    assert outcome.gossip == [CAROL]
    assert store.lookup_peer(ME) is None

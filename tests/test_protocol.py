"""Tests for protocol assembly."""

import hashlib
import io
import zipfile
from datetime import UTC, datetime
from uuid import UUID

import pytest

from governance.models.meeting import Decision, MeetingFormat
from governance.protocol import (
    ItemSnapshot,
    OrganizationDetails,
    ProtocolAssembler,
    ProtocolSnapshot,
    SignatureEmbedder,
    VoteSnapshot,
    build_package,
)
from governance.protocol.packaging import FIXED_DATE_TIME

ITEM_1 = UUID("00000000-0000-0000-0000-000000000001")
ITEM_2 = UUID("00000000-0000-0000-0000-000000000002")
VOTED_AT = datetime(2026, 4, 10, 18, 30, tzinfo=UTC)


def make_vote(voter: str, item: UUID, position: int, choice: str, **kw) -> VoteSnapshot:
    return VoteSnapshot(
        agenda_item_id=item,
        item_position=position,
        voter_id=voter,
        voter_name=kw.pop("voter_name", voter.title()),
        unit_number=kw.pop("unit_number", "1"),
        weight=kw.pop("weight", 400.0),
        choice=choice,
        voted_at=kw.pop("voted_at", VOTED_AT),
        vote_hash=f"hash-{voter}-{position}",
        **kw,
    )


def make_snapshot(**overrides) -> ProtocolSnapshot:
    values = {
        "meeting_id": UUID("10000000-0000-0000-0000-000000000000"),
        "protocol_number": "3/2026",
        "building_address": "12 Elm Street",
        "format": MeetingFormat.ONLINE,
        "held_at": datetime(2026, 4, 10, 18, 0, tzinfo=UTC),
        "results_published_at": datetime(2026, 4, 20, 12, 0, tzinfo=UTC),
        "total_area": 1000.0,
        "voted_area": 700.0,
        "participation_percent": 70.0,
        "participant_count": 2,
        "total_eligible_count": 3,
        "quorum_percent": 50.0,
        "quorum_reached": True,
        "items": (
            ItemSnapshot(
                agenda_item_id=ITEM_1,
                position=1,
                title="Approve the budget",
                threshold="simple_majority",
                required_percent=50.0,
                votes_for=400.0,
                votes_against=300.0,
                votes_abstain=0.0,
                percent_for=57.142857,
                percent_against=42.857143,
                percent_abstain=0.0,
                threshold_met=True,
                decision=Decision.APPROVED,
            ),
            ItemSnapshot(
                agenda_item_id=ITEM_2,
                position=2,
                title="Replace the roof",
                threshold="two_thirds",
                required_percent=66.67,
                votes_for=400.0,
                votes_against=0.0,
                votes_abstain=300.0,
                percent_for=40.0,
                percent_against=0.0,
                percent_abstain=30.0,
                threshold_met=False,
                decision=Decision.REJECTED,
            ),
        ),
        "votes": (
            make_vote("alice", ITEM_1, 1, "for"),
            make_vote("bob", ITEM_1, 1, "against", weight=300.0, unit_number="2",
                      comment="Too expensive"),
            make_vote("alice", ITEM_2, 2, "for"),
            make_vote("bob", ITEM_2, 2, "abstain", weight=300.0, unit_number="2"),
        ),
        "organization": OrganizationDetails(name="Riverside Management", tax_id="12345678"),
    }
    values.update(overrides)
    return ProtocolSnapshot(**values)


@pytest.fixture(scope="module")
def assembler() -> ProtocolAssembler:
    return ProtocolAssembler()


def open_package(document: bytes) -> zipfile.ZipFile:
    return zipfile.ZipFile(io.BytesIO(document))


class TestAssembly:
    """Determinism and content of the rendered package."""

    def test_same_snapshot_gives_same_bytes(self, assembler: ProtocolAssembler) -> None:
        first = assembler.assemble(make_snapshot())
        second = ProtocolAssembler().assemble(make_snapshot())

        assert first.document_bytes == second.document_bytes
        assert first.content_hash == second.content_hash
        assert first.content_hash == hashlib.sha256(first.document_bytes).hexdigest()

    def test_changed_choice_changes_hash(self, assembler: ProtocolAssembler) -> None:
        snapshot = make_snapshot()
        votes = list(snapshot.votes)
        votes[1] = make_vote("bob", ITEM_1, 1, "for", weight=300.0, unit_number="2")

        changed = assembler.assemble(make_snapshot(votes=tuple(votes)))

        assert changed.content_hash != assembler.assemble(snapshot).content_hash
        assert changed.snapshot_digest != snapshot.digest()

    def test_package_parts_in_fixed_order(self, assembler: ProtocolAssembler) -> None:
        package = open_package(assembler.assemble(make_snapshot()).document_bytes)

        assert package.namelist() == [
            "[Content_Types].xml",
            "_rels/.rels",
            "word/_rels/document.xml.rels",
            "word/document.xml",
            "word/media/uk_qr.png",
            "word/media/voter_qr_0.png",
            "word/media/voter_qr_1.png",
        ]
        assert {info.date_time for info in package.infolist()} == {FIXED_DATE_TIME}

    def test_one_image_per_voter(self, assembler: ProtocolAssembler) -> None:
        package = open_package(assembler.assemble(make_snapshot(votes=())).document_bytes)

        assert [n for n in package.namelist() if n.startswith("word/media/voter_qr")] == []

    def test_document_shows_number_digest_and_items(
        self, assembler: ProtocolAssembler
    ) -> None:
        snapshot = make_snapshot()
        assembled = assembler.assemble(snapshot)
        document = open_package(assembled.document_bytes).read("word/document.xml").decode()

        assert "PROTOCOL No. 3/2026" in document
        assert assembled.snapshot_digest == snapshot.digest()
        assert snapshot.digest() in document
        assert "Approve the budget" in document
        assert "Too expensive" in document
        assert "12 Elm Street" in document

    def test_markup_in_titles_is_escaped(self, assembler: ProtocolAssembler) -> None:
        snapshot = make_snapshot()
        items = list(snapshot.items)
        items[0] = items[0].model_copy(update={"title": "Repairs <roof> & gutters"})

        assembled = assembler.assemble(make_snapshot(items=tuple(items)))
        document = open_package(assembled.document_bytes).read("word/document.xml").decode()

        assert "Repairs &lt;roof&gt; &amp; gutters" in document

    def test_chair_decision_follows_participation(
        self, assembler: ProtocolAssembler
    ) -> None:
        elected = open_package(
            assembler.assemble(make_snapshot()).document_bytes
        ).read("word/document.xml").decode()
        nobody = open_package(
            assembler.assemble(
                make_snapshot(
                    voted_area=0.0, participation_percent=0.0, participant_count=0,
                    quorum_reached=False, votes=(),
                )
            ).document_bytes
        ).read("word/document.xml").decode()

        assert "Meeting chair and secretary elected." in elected
        assert "not elected" not in elected
        assert "Meeting chair and secretary not elected." in nobody
        assert "Meeting chair and secretary elected." not in nobody


class TestSnapshotDigest:
    def test_digest_is_stable(self) -> None:
        assert make_snapshot().digest() == make_snapshot().digest()

    def test_canonical_json_has_sorted_keys(self) -> None:
        text = make_snapshot().canonical_json()

        assert '": ' not in text
        assert text.index('"building_address"') < text.index('"votes"')


class TestSignatureEmbedder:
    def test_voter_token_lists_all_votes(self) -> None:
        votes = [make_vote("alice", ITEM_1, 1, "for"), make_vote("alice", ITEM_2, 2, "against")]

        token = SignatureEmbedder().voter_token("3/2026", votes, "12 Elm Street")

        assert "Protocol: 3/2026" in token
        assert "Votes: 2. FOR; 3. AGAINST" in token
        assert "Area: 400.00 m2" in token

    def test_render_is_deterministic_png(self) -> None:
        embedder = SignatureEmbedder()

        first = embedder.render("token")

        assert first.startswith(b"\x89PNG")
        assert first == embedder.render("token")


def test_build_package_rejects_duplicate_parts() -> None:
    with pytest.raises(ValueError, match="Duplicate"):
        build_package([("a.xml", b"1"), ("a.xml", b"2")])

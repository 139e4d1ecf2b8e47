"""Protocol assembly: meeting snapshot in, hash-sealed .docx out.

assemble() is a pure function of the snapshot. It reads no clock and no
database, so assembling the same snapshot twice gives byte-identical
documents and therefore the same content hash.
"""

import hashlib
from datetime import datetime
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from governance.models.meeting import Decision, MeetingFormat, ThresholdType
from governance.protocol.packaging import build_package
from governance.protocol.schemas import AssembledProtocol, ProtocolSnapshot, VoteSnapshot
from governance.protocol.signature import CHOICE_LABELS, SignatureEmbedder
from governance.voting.tally import chair_election_tally

TEMPLATE_DIR = Path(__file__).parent / "templates"

ORGANIZATION_IMAGE_RID = "rId100"
VOTER_IMAGE_RID_BASE = 200

FORMAT_LABELS = {
    MeetingFormat.ONLINE: "absentee",
    MeetingFormat.OFFLINE: "in-person",
    MeetingFormat.HYBRID: "mixed in-person and absentee",
}

THRESHOLD_LABELS = {
    ThresholdType.SIMPLE_MAJORITY.value: "simple majority of participating area",
    ThresholdType.QUALIFIED_MAJORITY.value: "qualified majority of total area",
    ThresholdType.TWO_THIRDS.value: "two thirds of total area",
    ThresholdType.THREE_QUARTERS.value: "three quarters of total area",
    ThresholdType.UNANIMOUS.value: "all owners",
}

DECISION_LABELS = {
    Decision.APPROVED: "Resolution adopted.",
    Decision.REJECTED: "Resolution not adopted.",
    Decision.NO_QUORUM: "Resolution not adopted: no quorum.",
}


def _format_number(value: float) -> str:
    """Render 66.67 as '66.67' and 50.0 as '50'."""
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _format_date(value: datetime | None) -> str:
    return value.strftime("%d.%m.%Y") if value else "___"


def _format_time(value: datetime | None) -> str:
    return value.strftime("%H:%M") if value else "___"


class ProtocolAssembler:
    """Render a ProtocolSnapshot into a WordprocessingML package."""

    def __init__(self, embedder: SignatureEmbedder | None = None):
        """Initialize assembler.

        Args:
            embedder: QR renderer for voter and organization tokens
        """
        self.embedder = embedder or SignatureEmbedder()
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
            keep_trailing_newline=False,
        )

    def assemble(self, snapshot: ProtocolSnapshot) -> AssembledProtocol:
        """Render the protocol document of a meeting.

        Args:
            snapshot: Frozen meeting data

        Returns:
            AssembledProtocol with document bytes, content hash and snapshot digest
        """
        snapshot_digest = snapshot.digest()
        voters = self._group_by_voter(snapshot.votes)

        organization_png = self.embedder.render(
            self.embedder.organization_token(snapshot.organization)
        )
        voter_images = []
        image_by_voter: dict[str, dict[str, Any]] = {}
        for index, (voter_id, votes) in enumerate(voters):
            image = {
                "rid": f"rId{VOTER_IMAGE_RID_BASE + index}",
                "name": f"voter_qr_{index}.png",
                "target": f"media/voter_qr_{index}.png",
            }
            token = self.embedder.voter_token(
                snapshot.protocol_number, votes, snapshot.building_address
            )
            image["png"] = self.embedder.render(token)
            voter_images.append(image)
            image_by_voter[voter_id] = image

        context = self._context(snapshot, snapshot_digest, voter_images, image_by_voter)

        parts: list[tuple[str, bytes]] = [
            ("[Content_Types].xml", self._render("content_types.xml.j2", context)),
            ("_rels/.rels", self._render("rels.xml.j2", context)),
            ("word/_rels/document.xml.rels", self._render("document_rels.xml.j2", context)),
            ("word/document.xml", self._render("document.xml.j2", context)),
            ("word/media/uk_qr.png", organization_png),
        ]
        parts.extend((f"word/{image['target']}", image["png"]) for image in voter_images)

        document = build_package(parts)
        return AssembledProtocol(
            document_bytes=document,
            content_hash=hashlib.sha256(document).hexdigest(),
            snapshot_digest=snapshot_digest,
            protocol_number=snapshot.protocol_number,
        )

    def _render(self, template_name: str, context: dict[str, Any]) -> bytes:
        text = self.env.get_template(template_name).render(context)
        return text.lstrip().encode("utf-8")

    @staticmethod
    def _group_by_voter(
        votes: tuple[VoteSnapshot, ...],
    ) -> list[tuple[str, list[VoteSnapshot]]]:
        """Votes per voter; voters ordered by first vote time, then id."""
        grouped: dict[str, list[VoteSnapshot]] = {}
        for vote in votes:
            grouped.setdefault(vote.voter_id, []).append(vote)
        for voter_votes in grouped.values():
            voter_votes.sort(key=lambda v: v.item_position)
        return sorted(
            grouped.items(),
            key=lambda pair: (min(v.voted_at for v in pair[1]), pair[0]),
        )

    def _context(
        self,
        snapshot: ProtocolSnapshot,
        snapshot_digest: str,
        voter_images: list[dict[str, Any]],
        image_by_voter: dict[str, dict[str, Any]],
    ) -> dict[str, Any]:
        items = []
        for item in sorted(snapshot.items, key=lambda i: i.position):
            votes = sorted(
                snapshot.votes_for_item(item.agenda_item_id),
                key=lambda v: (v.voted_at, v.voter_id),
            )
            items.append(
                {
                    "number": item.position + 1,
                    "item": item,
                    "votes": votes,
                    "has_comments": any(v.comment and v.comment.strip() for v in votes),
                    "threshold_label": THRESHOLD_LABELS.get(item.threshold, item.threshold),
                    "required_percent": _format_number(item.required_percent),
                }
            )

        appendix = [
            {
                "vote": vote,
                "item_number": vote.item_position + 1,
                "date": _format_date(vote.voted_at),
                "image": image_by_voter[vote.voter_id],
            }
            for vote in sorted(
                snapshot.votes,
                key=lambda v: (v.item_position, v.voted_at, v.voter_id),
            )
        ]

        return {
            "snapshot": snapshot,
            "snapshot_digest": snapshot_digest,
            "format_label": FORMAT_LABELS[snapshot.format],
            "held_date": _format_date(snapshot.held_at),
            "held_time": _format_time(snapshot.held_at),
            "location": snapshot.location or snapshot.building_address,
            "quorum_required": _format_number(snapshot.quorum_percent),
            "published": (
                snapshot.results_published_at.strftime("%d.%m.%Y %H:%M UTC")
                if snapshot.results_published_at
                else None
            ),
            "chair": chair_election_tally(snapshot.voted_area, snapshot.total_area),
            "items": items,
            "appendix": appendix,
            "organization_image": {
                "rid": ORGANIZATION_IMAGE_RID,
                "name": "uk_qr.png",
                "target": "media/uk_qr.png",
            },
            "voter_images": voter_images,
            "choice_labels": CHOICE_LABELS,
            "decision_labels": DECISION_LABELS,
        }

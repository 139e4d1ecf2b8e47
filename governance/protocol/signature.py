"""QR tokens embedded in the protocol.

Each voter gets a QR image in the appendix encoding who voted, for which
unit and area, and how. The management company gets one identifying
itself. These are human-auditable marks, not cryptographic signatures.
"""

import io
from collections.abc import Sequence

import qrcode
from qrcode.constants import ERROR_CORRECT_L

from governance.protocol.schemas import OrganizationDetails, VoteSnapshot

CHOICE_LABELS = {
    "for": "FOR",
    "against": "AGAINST",
    "abstain": "ABSTAIN",
}

QR_COLOR = "#1f2937"


class SignatureEmbedder:
    """Build token strings and render them as PNG QR codes."""

    def __init__(self, box_size: int = 4, border: int = 1):
        """Initialize embedder.

        Args:
            box_size: Pixels per QR module
            border: Quiet zone width in modules
        """
        self.box_size = box_size
        self.border = border

    def voter_token(
        self,
        protocol_number: str,
        votes: Sequence[VoteSnapshot],
        building_address: str,
    ) -> str:
        """Token for one voter covering all of their votes in the meeting.

        Args:
            protocol_number: Protocol number, e.g. '12/2026'
            votes: The voter's votes, in agenda order (at least one)
            building_address: Address of the building

        Returns:
            Multi-line token text
        """
        first = votes[0]
        choices = "; ".join(
            f"{vote.item_position + 1}. {CHOICE_LABELS.get(vote.choice, vote.choice)}"
            for vote in votes
        )
        voted_at = min(vote.voted_at for vote in votes)
        return "\n".join(
            [
                "ELECTRONIC SIGNATURE",
                f"Protocol: {protocol_number}",
                f"Name: {first.voter_name}",
                f"Unit: {first.unit_number or '-'}",
                f"Area: {first.weight:.2f} m2",
                f"Votes: {choices}",
                f"Date: {voted_at.strftime('%Y-%m-%d %H:%M:%S')} UTC",
                f"Address: {building_address}",
            ]
        )

    def organization_token(self, organization: OrganizationDetails) -> str:
        return "\n".join(
            [
                f"Company: {organization.name}",
                f"Address: {organization.address}",
                f"Bank: {organization.bank}",
                f"Account: {organization.account}",
                f"Tax ID: {organization.tax_id}",
                f"Activity code: {organization.activity_code}",
                f"Bank code: {organization.bank_code}",
            ]
        )

    def render(self, token: str) -> bytes:
        """Render a token as PNG bytes. Same token, same bytes."""
        qr = qrcode.QRCode(
            version=None,
            error_correction=ERROR_CORRECT_L,
            box_size=self.box_size,
            border=self.border,
        )
        qr.add_data(token)
        qr.make(fit=True)

        img = qr.make_image(fill_color=QR_COLOR, back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()

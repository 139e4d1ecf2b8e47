"""Build the protocol snapshot from stored meeting state."""

from collections.abc import Iterable

from governance.config import Settings
from governance.models.meeting import Decision, Meeting
from governance.models.vote import VoteRecord
from governance.protocol.schemas import (
    ItemSnapshot,
    OrganizationDetails,
    ProtocolSnapshot,
    VoteSnapshot,
)
from governance.voting.tally import TallyResult


def organization_from_settings(settings: Settings) -> OrganizationDetails:
    return OrganizationDetails(
        name=settings.org_name,
        address=settings.org_address,
        bank=settings.org_bank,
        account=settings.org_account,
        tax_id=settings.org_tax_id,
        activity_code=settings.org_activity_code,
        bank_code=settings.org_bank_code,
    )


def protocol_number(meeting: Meeting) -> str:
    """Meeting number and year, e.g. '12/2026'.

    The year comes from the confirmed meeting date, falling back to the
    publication of results, never from the current clock.
    """
    reference = meeting.confirmed_date_time or meeting.results_published_at
    if reference is None:
        return str(meeting.number)
    return f"{meeting.number}/{reference.year}"


def build_snapshot(
    meeting: Meeting,
    votes: Iterable[VoteRecord],
    organization: OrganizationDetails,
) -> ProtocolSnapshot:
    """Freeze a published meeting into a ProtocolSnapshot.

    Args:
        meeting: Meeting with results published (item outcomes written)
        votes: Votes counted in the published tally
        organization: Issuing management company

    Returns:
        ProtocolSnapshot with items in agenda order and votes sorted by
        (item position, voted_at, voter id)
    """
    positions = {item.id: item.position for item in meeting.agenda_items}

    items = []
    for item in meeting.agenda_items:
        result = TallyResult.from_item(item, meeting.total_area)
        items.append(
            ItemSnapshot(
                agenda_item_id=item.id,
                position=item.position,
                title=item.title,
                description=item.description,
                threshold=item.threshold.value,
                required_percent=item.threshold.required_percent,
                votes_for=result.votes_for,
                votes_against=result.votes_against,
                votes_abstain=result.votes_abstain,
                percent_for=round(result.percent_for, 6),
                percent_against=round(result.percent_against, 6),
                percent_abstain=round(result.percent_abstain, 6),
                threshold_met=result.threshold_met,
                decision=item.decision or Decision.NO_QUORUM,
            )
        )

    vote_snapshots = sorted(
        (
            VoteSnapshot(
                agenda_item_id=vote.agenda_item_id,
                item_position=positions[vote.agenda_item_id],
                voter_id=vote.voter_id,
                voter_name=vote.voter_name or vote.voter_id,
                unit_number=vote.unit_number,
                weight=vote.weight,
                choice=vote.choice.value,
                comment=vote.comment,
                voted_at=vote.voted_at,
                vote_hash=vote.vote_hash,
            )
            for vote in votes
            if vote.agenda_item_id in positions
        ),
        key=lambda v: (v.item_position, v.voted_at, v.voter_id),
    )

    return ProtocolSnapshot(
        meeting_id=meeting.id,
        protocol_number=protocol_number(meeting),
        building_address=meeting.building_address or "Address not specified",
        format=meeting.format,
        location=meeting.location,
        organizer_name=meeting.organizer_name,
        held_at=meeting.confirmed_date_time or meeting.voting_opened_at,
        results_published_at=meeting.results_published_at,
        total_area=meeting.total_area,
        voted_area=meeting.voted_area,
        participation_percent=round(meeting.participation_percent, 6),
        participant_count=meeting.participant_count,
        total_eligible_count=meeting.total_eligible_count,
        quorum_percent=meeting.quorum_percent,
        quorum_reached=meeting.quorum_reached,
        items=tuple(sorted(items, key=lambda i: i.position)),
        votes=tuple(vote_snapshots),
        organization=organization,
    )

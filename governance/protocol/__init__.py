"""Protocol document generation.

Provides:
- ProtocolAssembler: Deterministic .docx rendering of a meeting snapshot
- SignatureEmbedder: QR tokens for voters and the management company
- build_snapshot: Freeze stored meeting state into a ProtocolSnapshot
"""

from governance.protocol.assembler import ProtocolAssembler
from governance.protocol.packaging import DOCX_MEDIA_TYPE, build_package
from governance.protocol.schemas import (
    AssembledProtocol,
    ItemSnapshot,
    OrganizationDetails,
    ProtocolSnapshot,
    VoteSnapshot,
)
from governance.protocol.signature import SignatureEmbedder
from governance.protocol.snapshot import (
    build_snapshot,
    organization_from_settings,
    protocol_number,
)

__all__ = [
    "ProtocolAssembler",
    "SignatureEmbedder",
    "AssembledProtocol",
    "ProtocolSnapshot",
    "ItemSnapshot",
    "VoteSnapshot",
    "OrganizationDetails",
    "build_snapshot",
    "build_package",
    "organization_from_settings",
    "protocol_number",
    "DOCX_MEDIA_TYPE",
]

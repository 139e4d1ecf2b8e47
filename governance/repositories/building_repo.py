"""Repository for voting units and per-building meeting settings."""

import logging

from governance.db.turso import TursoClient, rows_to_dicts
from governance.models.base import format_timestamp
from governance.models.voting_unit import BuildingMeetingSettings, VotingUnit

logger = logging.getLogger(__name__)

_UNIT_COLUMNS = (
    "id, building_id, unit_number, area_sqm, owner_id, owner_name, created_at"
)


class BuildingRepository:
    """Units (unique per building and unit number) and building settings."""

    def __init__(self, db_client: TursoClient):
        """Initialize repository with database client.

        Args:
            db_client: TursoClient instance for database operations
        """
        self._db = db_client

    async def initialize(self) -> None:
        """Create unit and settings tables if they don't exist."""
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS voting_units (
                id TEXT PRIMARY KEY,
                building_id TEXT NOT NULL,
                unit_number TEXT NOT NULL,
                area_sqm REAL NOT NULL CHECK (area_sqm > 0),
                owner_id TEXT,
                owner_name TEXT,
                created_at TEXT NOT NULL,
                UNIQUE(building_id, unit_number)
            )
        """)
        await self._db.execute("""
            CREATE INDEX IF NOT EXISTS idx_voting_units_owner
            ON voting_units(building_id, owner_id)
        """)
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS building_settings (
                building_id TEXT PRIMARY KEY,
                default_quorum_percent REAL NOT NULL,
                allow_resident_initiative INTEGER NOT NULL,
                require_otp_for_votes INTEGER NOT NULL
            )
        """)
        logger.info("Building tables initialized")

    async def upsert_unit(self, unit: VotingUnit) -> VotingUnit:
        """Create or update a unit, keyed on (building_id, unit_number).

        Args:
            unit: Unit to store

        Returns:
            The stored unit (existing id is kept on update)
        """
        await self._db.execute(
            f"""
            INSERT INTO voting_units ({_UNIT_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(building_id, unit_number) DO UPDATE SET
                area_sqm = excluded.area_sqm,
                owner_id = excluded.owner_id,
                owner_name = excluded.owner_name
            """,
            [
                str(unit.id),
                unit.building_id,
                unit.unit_number,
                unit.area_sqm,
                unit.owner_id,
                unit.owner_name,
                format_timestamp(unit.created_at),
            ],
        )
        stored = await self.get_unit(unit.building_id, unit.unit_number)
        if stored is None:
            msg = f"Unit {unit.building_id}/{unit.unit_number} missing after upsert"
            raise RuntimeError(msg)
        return stored

    async def get_unit(self, building_id: str, unit_number: str) -> VotingUnit | None:
        result = await self._db.execute(
            f"""
            SELECT {_UNIT_COLUMNS} FROM voting_units
            WHERE building_id = ? AND unit_number = ?
            """,
            [building_id, unit_number],
        )
        rows = rows_to_dicts(result)
        return VotingUnit.model_validate(rows[0]) if rows else None

    async def list_units(self, building_id: str) -> list[VotingUnit]:
        """All units of a building, ordered by unit number."""
        result = await self._db.execute(
            f"""
            SELECT {_UNIT_COLUMNS} FROM voting_units
            WHERE building_id = ?
            ORDER BY unit_number ASC
            """,
            [building_id],
        )
        return [VotingUnit.model_validate(row) for row in rows_to_dicts(result)]

    async def list_units_for_owner(
        self, building_id: str, owner_id: str
    ) -> list[VotingUnit]:
        """Units a given owner holds in a building."""
        result = await self._db.execute(
            f"""
            SELECT {_UNIT_COLUMNS} FROM voting_units
            WHERE building_id = ? AND owner_id = ?
            ORDER BY unit_number ASC
            """,
            [building_id, owner_id],
        )
        return [VotingUnit.model_validate(row) for row in rows_to_dicts(result)]

    async def get_settings(self, building_id: str) -> BuildingMeetingSettings | None:
        """Stored meeting settings for a building, None if never configured."""
        result = await self._db.execute(
            """
            SELECT building_id, default_quorum_percent, allow_resident_initiative,
                   require_otp_for_votes
            FROM building_settings WHERE building_id = ?
            """,
            [building_id],
        )
        rows = rows_to_dicts(result)
        return BuildingMeetingSettings.model_validate(rows[0]) if rows else None

    async def save_settings(self, settings: BuildingMeetingSettings) -> None:
        """Create or replace a building's meeting settings."""
        await self._db.execute(
            """
            INSERT INTO building_settings
                (building_id, default_quorum_percent, allow_resident_initiative,
                 require_otp_for_votes)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(building_id) DO UPDATE SET
                default_quorum_percent = excluded.default_quorum_percent,
                allow_resident_initiative = excluded.allow_resident_initiative,
                require_otp_for_votes = excluded.require_otp_for_votes
            """,
            [
                settings.building_id,
                settings.default_quorum_percent,
                int(settings.allow_resident_initiative),
                int(settings.require_otp_for_votes),
            ],
        )
        logger.debug(f"Saved meeting settings for building {settings.building_id}")

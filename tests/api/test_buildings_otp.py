"""Integration tests for building and one-time code endpoints."""

from httpx import AsyncClient

MANAGER = {"X-User-Id": "mgr-1", "X-User-Role": "manager"}
ALICE = {
    "X-User-Id": "alice",
    "X-User-Role": "resident",
    "X-Building-Id": "bld-1",
    "X-User-Phone": "+15550100",
}


class TestBuildingsAPI:
    async def test_register_and_list_units(self, client: AsyncClient) -> None:
        response = await client.post(
            "/buildings/bld-1/units",
            json={"unit_number": "1", "area_sqm": 55.5, "owner_id": "alice"},
            headers=MANAGER,
        )
        assert response.status_code == 201

        units = await client.get("/buildings/bld-1/units", headers=ALICE)

        assert [(u["unit_number"], u["area_sqm"]) for u in units.json()] == [("1", 55.5)]

    async def test_resident_cannot_register_units(self, client: AsyncClient) -> None:
        response = await client.post(
            "/buildings/bld-1/units",
            json={"unit_number": "1", "area_sqm": 55.5},
            headers=ALICE,
        )
        assert response.status_code == 403

    async def test_update_unit_owner(self, client: AsyncClient) -> None:
        await client.post(
            "/buildings/bld-1/units",
            json={"unit_number": "1", "area_sqm": 55.5, "owner_id": "alice"},
            headers=MANAGER,
        )

        response = await client.patch(
            "/buildings/bld-1/units/1", json={"clear_owner": True}, headers=MANAGER
        )

        assert response.status_code == 200
        assert response.json()["owner_id"] is None
        assert response.json()["area_sqm"] == 55.5

    async def test_update_rejects_conflicting_owner_fields(
        self, client: AsyncClient
    ) -> None:
        response = await client.patch(
            "/buildings/bld-1/units/1",
            json={"clear_owner": True, "owner_id": "bob"},
            headers=MANAGER,
        )
        assert response.status_code == 400

    async def test_update_unknown_unit(self, client: AsyncClient) -> None:
        response = await client.patch(
            "/buildings/bld-1/units/99", json={"area_sqm": 10.0}, headers=MANAGER
        )
        assert response.status_code == 404

    async def test_settings_default_then_update(self, client: AsyncClient) -> None:
        default = await client.get("/buildings/bld-1/settings", headers=MANAGER)
        assert default.json()["allow_resident_initiative"] is True

        response = await client.put(
            "/buildings/bld-1/settings",
            json={"default_quorum_percent": 66.0, "require_otp_for_votes": True},
            headers=MANAGER,
        )
        assert response.status_code == 200

        stored = await client.get("/buildings/bld-1/settings", headers=MANAGER)
        assert stored.json()["default_quorum_percent"] == 66.0
        assert stored.json()["require_otp_for_votes"] is True


class TestOTPAPI:
    async def test_request_and_verify(self, client: AsyncClient) -> None:
        issued = await client.post(
            "/otp/request", json={"purpose": "agenda_vote"}, headers=ALICE
        )
        assert issued.status_code == 201
        code = issued.json()["code"]
        assert code is not None

        verified = await client.post(
            "/otp/verify", json={"purpose": "agenda_vote", "code": code}, headers=ALICE
        )
        assert verified.status_code == 200
        assert verified.json()["verified"] is True

        again = await client.post(
            "/otp/verify", json={"purpose": "agenda_vote", "code": code}, headers=ALICE
        )
        assert again.status_code == 409
        assert again.json()["error"] == "already_used"

    async def test_wrong_code(self, client: AsyncClient) -> None:
        await client.post("/otp/request", json={"purpose": "agenda_vote"}, headers=ALICE)

        response = await client.post(
            "/otp/verify",
            json={"purpose": "agenda_vote", "code": "abcdef"},
            headers=ALICE,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_code"

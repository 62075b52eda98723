"""Tests for the machine roster controller."""

import asyncio
import json

import httpx
import pytest

from machine_monitor.errors import FailureKind
from machine_monitor.roster import MachineRosterController
from machine_monitor.schema import MachineStatus


async def _wait_for_requests(mock_service, count):
    for _ in range(100):
        if len(mock_service.requests) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"expected {count} requests, saw {len(mock_service.requests)}")


class TestFetchAll:
    """Tests for fetching the roster."""

    @pytest.mark.asyncio
    async def test_replaces_local_list(self, authed_api, mock_service, sample_machines):
        """Test that a fetch replaces the local list."""
        mock_service.on("GET", "/api/machines", json=sample_machines)
        roster = MachineRosterController(authed_api)

        result = await roster.fetch_all()

        assert result.ok
        assert [m.id for m in roster.machines] == ["m1", "m2", "m3", "m4"]
        assert roster.machines[0].sensor_data.spindle_speed_rpm == 1200
        assert roster.machines[1].status == MachineStatus.INACTIVE
        assert roster.loading is False
        assert roster.refreshing is False

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, authed_api, mock_service):
        """Test that the fetch sends the bearer token."""
        mock_service.on("GET", "/api/machines", json=[])

        await MachineRosterController(authed_api).fetch_all()

        assert mock_service.requests[0].headers["Authorization"] == "Bearer T1"

    @pytest.mark.asyncio
    async def test_full_replace_not_merge(self, authed_api, mock_service, sample_machines):
        """Test that a refetch replaces rather than merges."""
        roster = MachineRosterController(authed_api)
        mock_service.on("GET", "/api/machines", json=sample_machines)
        await roster.fetch_all()

        mock_service.on("GET", "/api/machines", json=[{"_id": "m9", "name": "New"}])
        await roster.fetch_all()

        assert [m.id for m in roster.machines] == ["m9"]

    @pytest.mark.asyncio
    async def test_duplicate_ids_collapsed(self, authed_api, mock_service):
        """Test that duplicate ids keep the first occurrence."""
        mock_service.on(
            "GET",
            "/api/machines",
            json=[{"_id": "m1", "name": "A"}, {"_id": "m1", "name": "B"}, {"_id": "m2", "name": "C"}],
        )
        roster = MachineRosterController(authed_api)

        await roster.fetch_all()

        assert [(m.id, m.name) for m in roster.machines] == [("m1", "A"), ("m2", "C")]

    @pytest.mark.asyncio
    async def test_status_defaults_to_active(self, authed_api, mock_service):
        """Test that a missing status reads as active."""
        mock_service.on("GET", "/api/machines", json=[{"_id": "m1", "name": "A", "sensorData": None}])
        roster = MachineRosterController(authed_api)

        await roster.fetch_all()

        assert roster.machines[0].status == MachineStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_unknown_status_skips_only_that_machine(self, authed_api, mock_service, sample_machines):
        """Test that one unrecognised status does not empty the roster."""
        odd = {"_id": "m9", "name": "Press-09", "status": "decommissioned"}
        mock_service.on("GET", "/api/machines", json=[*sample_machines, odd])
        roster = MachineRosterController(authed_api)

        result = await roster.fetch_all()

        assert result.ok
        assert [m.id for m in roster.machines] == ["m1", "m2", "m3", "m4"]
        assert roster.get("m9") is None

    @pytest.mark.asyncio
    async def test_entry_missing_name_is_malformed(self, authed_api, mock_service):
        """Test that defects other than status still fail the whole response."""
        mock_service.on("GET", "/api/machines", json=[{"_id": "m1", "status": "bogus"}])

        result = await MachineRosterController(authed_api).fetch_all()

        assert result.kind == FailureKind.SERVER
        assert result.message == "Unexpected response from server"

    @pytest.mark.asyncio
    async def test_connection_error_leaves_state(self, authed_api, mock_service, sample_machines):
        """Test that a connection error leaves the roster alone."""
        roster = MachineRosterController(authed_api)
        mock_service.on("GET", "/api/machines", json=sample_machines)
        await roster.fetch_all()
        before = list(roster.machines)

        mock_service.offline = True
        result = await roster.fetch_all()

        assert result.kind == FailureKind.CONNECTION
        assert roster.machines == before
        assert authed_api.session.token == "T1"
        assert roster.loading is False

    @pytest.mark.asyncio
    async def test_unauthorized_ends_session(self, authed_api, mock_service):
        """Test that a 401 ends the session."""
        mock_service.on("GET", "/api/machines", status=401, json={"message": "Token expired"})
        roster = MachineRosterController(authed_api)

        result = await roster.fetch_all()

        assert result.kind == FailureKind.AUTH
        assert result.message == "Token expired"
        assert authed_api.session.token is None

    @pytest.mark.asyncio
    async def test_missing_token_maps_401_to_auth_error(self, api, mock_service):
        """Test a 401 when no token is held."""
        mock_service.on("GET", "/api/machines", status=401, json={})

        result = await MachineRosterController(api).fetch_all()

        assert "Authorization" not in mock_service.requests[0].headers
        assert result.kind == FailureKind.AUTH

    @pytest.mark.asyncio
    async def test_server_error_uses_default_message(self, authed_api, mock_service):
        """Test the default message for a server error."""
        mock_service.on("GET", "/api/machines", status=500)

        result = await MachineRosterController(authed_api).fetch_all()

        assert result.kind == FailureKind.SERVER
        assert result.message == "Failed to fetch machines"
        assert authed_api.session.token == "T1"

    @pytest.mark.asyncio
    async def test_malformed_response(self, authed_api, mock_service):
        """Test a roster body that is not a list."""
        mock_service.on("GET", "/api/machines", json={"machines": []})

        result = await MachineRosterController(authed_api).fetch_all()

        assert result.kind == FailureKind.SERVER


class TestLoadingFlags:
    """Tests for loading versus refreshing."""

    @pytest.mark.asyncio
    async def test_fetch_sets_loading(self, authed_api, mock_service):
        """Test that an initial fetch sets the loading flag."""
        gate = asyncio.Event()

        async def slow(request):
            await gate.wait()
            return httpx.Response(200, json=[])

        mock_service.on_call("GET", "/api/machines", slow)
        roster = MachineRosterController(authed_api)

        task = asyncio.create_task(roster.fetch_all())
        await _wait_for_requests(mock_service, 1)
        assert roster.loading is True
        assert roster.refreshing is False

        gate.set()
        await task
        assert roster.loading is False

    @pytest.mark.asyncio
    async def test_refresh_sets_refreshing_and_keeps_data(self, authed_api, mock_service, sample_machines):
        """Test that a refresh keeps the current list visible."""
        roster = MachineRosterController(authed_api)
        mock_service.on("GET", "/api/machines", json=sample_machines)
        await roster.fetch_all()

        gate = asyncio.Event()

        async def slow(request):
            await gate.wait()
            return httpx.Response(200, json=sample_machines[:1])

        mock_service.on_call("GET", "/api/machines", slow)
        task = asyncio.create_task(roster.refresh())
        await _wait_for_requests(mock_service, 2)

        assert roster.refreshing is True
        assert roster.loading is False
        assert roster.total_count == 4

        gate.set()
        await task
        assert roster.refreshing is False
        assert roster.total_count == 1

    @pytest.mark.asyncio
    async def test_fetch_during_refresh_keeps_refreshing(self, authed_api, mock_service):
        """Test a fetch issued while a refresh is running."""
        gate = asyncio.Event()

        async def slow(request):
            await gate.wait()
            return httpx.Response(200, json=[])

        mock_service.on_call("GET", "/api/machines", slow)
        roster = MachineRosterController(authed_api)

        refresh = asyncio.create_task(roster.refresh())
        await _wait_for_requests(mock_service, 1)
        fetch = asyncio.create_task(roster.fetch_all())
        await _wait_for_requests(mock_service, 2)

        assert roster.refreshing is True
        assert roster.loading is False

        gate.set()
        await asyncio.gather(refresh, fetch)
        assert roster.refreshing is False


class TestLastIssuedWins:
    """Tests for ordering of overlapping fetches."""

    @pytest.mark.asyncio
    async def test_stale_completion_is_discarded(self, authed_api, mock_service):
        """Test that an older fetch completing late is discarded."""
        gate = asyncio.Event()
        calls = 0

        async def handler(request):
            nonlocal calls
            calls += 1
            if calls == 1:
                await gate.wait()
                return httpx.Response(200, json=[{"_id": "old", "name": "Stale"}])
            return httpx.Response(200, json=[{"_id": "new", "name": "Fresh"}])

        mock_service.on_call("GET", "/api/machines", handler)
        roster = MachineRosterController(authed_api)

        first = asyncio.create_task(roster.fetch_all())
        await _wait_for_requests(mock_service, 1)
        await roster.refresh()
        assert [m.id for m in roster.machines] == ["new"]
        assert roster.loading is False
        assert roster.refreshing is False

        gate.set()
        stale = await first

        assert stale.ok
        assert [m.id for m in roster.machines] == ["new"]
        assert roster.loading is False

    @pytest.mark.asyncio
    async def test_closed_controller_discards_results(self, authed_api, mock_service, sample_machines):
        """Test that results arriving after close are dropped."""
        gate = asyncio.Event()

        async def slow(request):
            await gate.wait()
            return httpx.Response(200, json=sample_machines)

        mock_service.on_call("GET", "/api/machines", slow)
        roster = MachineRosterController(authed_api)

        task = asyncio.create_task(roster.fetch_all())
        await _wait_for_requests(mock_service, 1)
        roster.close()
        gate.set()
        await task

        assert roster.machines == []
        assert roster.loading is False


class TestAdd:
    """Tests for adding machines."""

    @pytest.mark.asyncio
    async def test_add_appends_server_copy(self, authed_api, mock_service):
        """Test that add appends the server's copy."""
        mock_service.on(
            "POST", "/api/machines", status=201, json={"_id": "m1", "name": "CNC-01", "status": "active"}
        )
        roster = MachineRosterController(authed_api)

        result = await roster.add("CNC-01")

        assert result.ok
        assert roster.total_count == 1
        assert roster.machines[0].id == "m1"
        assert roster.active_count == 1
        assert roster.inactive_count == 0
        assert mock_service.calls("GET", "/api/machines") == []

        request = mock_service.requests[0]
        assert json.loads(request.content) == {"name": "CNC-01"}
        assert request.headers["Authorization"] == "Bearer T1"

    @pytest.mark.asyncio
    async def test_add_appends_at_end(self, authed_api, mock_service, sample_machines):
        """Test that a new machine goes to the end of the list."""
        roster = MachineRosterController(authed_api)
        mock_service.on("GET", "/api/machines", json=sample_machines)
        await roster.fetch_all()

        mock_service.on("POST", "/api/machines", status=201, json={"_id": "m5", "name": "Drill-05"})
        await roster.add("Drill-05")

        assert [m.id for m in roster.machines] == ["m1", "m2", "m3", "m4", "m5"]

    @pytest.mark.asyncio
    async def test_added_id_survives_refetch(self, authed_api, mock_service, sample_machines):
        """Test that an added machine survives a refetch."""
        roster = MachineRosterController(authed_api)
        created = {"_id": "m5", "name": "Drill-05"}
        mock_service.on("POST", "/api/machines", status=201, json=created)
        await roster.add("Drill-05")

        mock_service.on("GET", "/api/machines", json=[created, *sample_machines])
        await roster.fetch_all()

        assert roster.get("m5") is not None

    @pytest.mark.asyncio
    async def test_existing_id_not_duplicated(self, authed_api, mock_service, sample_machines):
        """Test that an id already present is not appended twice."""
        roster = MachineRosterController(authed_api)
        mock_service.on("GET", "/api/machines", json=sample_machines)
        await roster.fetch_all()

        mock_service.on("POST", "/api/machines", status=201, json=sample_machines[0])
        await roster.add("CNC-01")

        assert roster.total_count == 4

    @pytest.mark.parametrize("name", ["", "   "])
    @pytest.mark.asyncio
    async def test_blank_name_sends_nothing(self, authed_api, mock_service, name):
        """Test that a blank name is rejected locally."""
        result = await MachineRosterController(authed_api).add(name)

        assert result.kind == FailureKind.VALIDATION
        assert result.message == "Please enter a machine name"
        assert mock_service.requests == []

    @pytest.mark.asyncio
    async def test_connection_error_leaves_list(self, authed_api, mock_service):
        """Test that a connection error leaves the list unchanged."""
        mock_service.offline = True
        roster = MachineRosterController(authed_api)

        result = await roster.add("CNC-01")

        assert result.kind == FailureKind.CONNECTION
        assert roster.machines == []

    @pytest.mark.asyncio
    async def test_server_rejection_message(self, authed_api, mock_service):
        """Test that the server's rejection message is passed through."""
        mock_service.on("POST", "/api/machines", status=409, json={"message": "Name already taken"})

        result = await MachineRosterController(authed_api).add("CNC-01")

        assert result.kind == FailureKind.SERVER
        assert result.message == "Name already taken"


class TestRemove:
    """Tests for the two-step delete."""

    @pytest.fixture
    async def roster(self, authed_api, mock_service, sample_machines):
        mock_service.on("GET", "/api/machines", json=sample_machines)
        roster = MachineRosterController(authed_api)
        await roster.fetch_all()
        mock_service.requests.clear()
        return roster

    @pytest.mark.asyncio
    async def test_confirm_removes_exactly_one(self, roster, mock_service):
        """Test that confirming removes exactly that machine."""
        mock_service.on("DELETE", "/api/machines/m2", json={"message": "Deleted"})

        pending = roster.remove("m2")
        assert pending.prompt == 'Are you sure you want to delete "Lathe-02"?'
        assert mock_service.requests == []

        result = await pending.confirm()

        assert result.ok
        assert result.value.message == "Deleted"
        assert [m.id for m in roster.machines] == ["m1", "m3", "m4"]
        assert mock_service.requests[0].headers["Authorization"] == "Bearer T1"

    @pytest.mark.asyncio
    async def test_cancel_is_noop(self, roster, mock_service):
        """Test that cancelling sends nothing."""
        pending = roster.remove("m2")

        result = pending.cancel()

        assert result.ok
        assert roster.total_count == 4
        assert mock_service.requests == []

    @pytest.mark.asyncio
    async def test_absent_id_is_already_removed(self, roster, mock_service):
        """Test removing an id that is not in the list."""
        result = await roster.remove("missing").confirm()

        assert result.ok
        assert [m.id for m in roster.machines] == ["m1", "m2", "m3", "m4"]
        assert mock_service.requests == []

    @pytest.mark.asyncio
    async def test_server_failure_leaves_list(self, roster, mock_service):
        """Test that a failed delete leaves the list unchanged."""
        mock_service.on("DELETE", "/api/machines/m2", status=404, json={"message": "Machine not found"})

        result = await roster.remove("m2").confirm()

        assert result.kind == FailureKind.SERVER
        assert result.message == "Machine not found"
        assert roster.total_count == 4

    @pytest.mark.asyncio
    async def test_connection_error_leaves_list(self, roster, mock_service):
        """Test that a connection error leaves the list unchanged."""
        mock_service.offline = True

        result = await roster.remove("m2").confirm()

        assert result.kind == FailureKind.CONNECTION
        assert roster.total_count == 4

    @pytest.mark.asyncio
    async def test_resolving_twice_raises(self, roster, mock_service):
        """Test that a removal can only be resolved once."""
        mock_service.on("DELETE", "/api/machines/m2", status=204)
        pending = roster.remove("m2")
        await pending.confirm()

        with pytest.raises(RuntimeError):
            pending.cancel()


class TestDerivedCounts:
    """Tests for the on-demand count views."""

    @pytest.mark.asyncio
    async def test_counts_track_list(self, authed_api, mock_service, sample_machines):
        """Test that the counts follow the current list."""
        mock_service.on("GET", "/api/machines", json=sample_machines)
        roster = MachineRosterController(authed_api)
        await roster.fetch_all()

        assert roster.total_count == 4
        assert roster.active_count == 2
        assert roster.inactive_count == 2

        mock_service.on("DELETE", "/api/machines/m1", status=204)
        await roster.remove("m1").confirm()

        assert roster.total_count == 3
        assert roster.active_count == 1
        assert roster.inactive_count == 2

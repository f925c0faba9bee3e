"""Tests for RegistryHTTPServer.

Servers bind port 0 on localhost and are exercised with urllib from a
worker thread, since the command coroutines run on the test's loop.
"""

import asyncio
import json
import urllib.error
import urllib.request
from typing import Any

import pytest

from landtitle.adapters.api.http_server import RegistryHTTPServer
from landtitle.adapters.cli.commands import CLICommandHandler
from landtitle.core.cadastre_service import CadastreService
from landtitle.core.citizen_service import CitizenService
from landtitle.core.parcel_validation import ParcelValidationService
from landtitle.core.titling_rules import TitlingDomainService
from landtitle.core.titling_service import TitlingService
from landtitle.tests.fakes import (
    FakeAlertNotifier,
    FakeCitizenRepository,
    FakeParcelRepository,
    FakeTitlingRequestRepository,
)

API_KEY = "test-api-key-123"

PARCEL_ARGS = {
    "code": "150101-001-002-003",
    "owner": "Juan Perez",
    "latitude": -12.0464,
    "longitude": -77.0428,
    "area": 250.5,
    "address": "Av. Abancay 123, Lima",
}


@pytest.fixture
def commands() -> CLICommandHandler:
    parcels = FakeParcelRepository()
    return CLICommandHandler(
        cadastre=CadastreService(parcels, ParcelValidationService(parcels)),
        titling=TitlingService(
            FakeTitlingRequestRepository(), TitlingDomainService(), FakeAlertNotifier()
        ),
        citizens=CitizenService(FakeCitizenRepository()),
    )


@pytest.fixture
async def server(commands: CLICommandHandler) -> RegistryHTTPServer:
    """A running server without authentication."""
    http_server = RegistryHTTPServer(commands, port=0)
    await http_server.start()
    yield http_server
    await http_server.stop()


@pytest.fixture
async def secured_server(commands: CLICommandHandler) -> RegistryHTTPServer:
    http_server = RegistryHTTPServer(
        commands, port=0, api_key=API_KEY, require_auth=True
    )
    await http_server.start()
    yield http_server
    await http_server.stop()


def _call(
    server: RegistryHTTPServer,
    path: str,
    body: Any = None,
    headers: dict[str, str] | None = None,
    method: str = "POST",
    raw: bytes | None = None,
) -> tuple[int, dict[str, Any]]:
    url = f"http://127.0.0.1:{server.bound_port}{path}"
    data = raw if raw is not None else (json.dumps(body).encode() if body is not None else None)
    request = urllib.request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/json", **(headers or {})},
        method=method,
    )
    try:
        with urllib.request.urlopen(request, timeout=10) as response:
            return response.status, json.loads(response.read())
    except urllib.error.HTTPError as e:
        return e.code, json.loads(e.read())


async def call(server: RegistryHTTPServer, path: str, **kwargs) -> tuple[int, dict[str, Any]]:
    return await asyncio.to_thread(_call, server, path, **kwargs)


class TestRegistryHTTPServerInitialization:
    def test_require_auth_without_api_key_raises_value_error(
        self, commands: CLICommandHandler
    ) -> None:
        with pytest.raises(ValueError, match="no api_key"):
            RegistryHTTPServer(commands, api_key=None, require_auth=True)

    def test_require_auth_with_empty_api_key_raises_value_error(
        self, commands: CLICommandHandler
    ) -> None:
        with pytest.raises(ValueError):
            RegistryHTTPServer(commands, api_key="", require_auth=True)

    def test_defaults(self, commands: CLICommandHandler) -> None:
        server = RegistryHTTPServer(commands)

        assert server.host == "127.0.0.1"
        assert server.port == 8080
        assert server.require_auth is False
        assert server.bound_port is None


@pytest.mark.asyncio
class TestRegistryHTTPServerRouting:
    async def test_health(self, server: RegistryHTTPServer) -> None:
        status, body = await call(server, "/health", method="GET")
        assert status == 200
        assert body == {"status": "healthy"}

    async def test_unknown_get_path(self, server: RegistryHTTPServer) -> None:
        status, _ = await call(server, "/api/parcel_stats", method="GET")
        assert status == 404

    async def test_unknown_command(self, server: RegistryHTTPServer) -> None:
        status, body = await call(server, "/api/drop_tables", body={})
        assert status == 404
        assert body["status"] == "error"

    async def test_register_and_show(self, server: RegistryHTTPServer) -> None:
        status, body = await call(server, "/api/register_parcel", body=PARCEL_ARGS)
        assert status == 200
        assert body["parcel"]["code"] == "150101-001-002-003"

        status, body = await call(
            server, "/api/show_parcel", body={"code": "150101-001-002-003"}
        )
        assert status == 200
        assert body["parcel"]["owner"] == "Juan Perez"

    async def test_empty_body_means_no_arguments(self, server: RegistryHTTPServer) -> None:
        status, body = await call(server, "/api/parcel_stats")
        assert status == 200
        assert body["stats"]["total"] == 0

    async def test_missing_parameter_is_bad_request(
        self, server: RegistryHTTPServer
    ) -> None:
        status, body = await call(server, "/api/show_parcel", body={})
        assert status == 400
        assert "Missing required parameter" in body["message"]

    async def test_invalid_json(self, server: RegistryHTTPServer) -> None:
        status, body = await call(server, "/api/parcel_stats", raw=b"{not json")
        assert status == 400
        assert body["message"] == "Invalid JSON body"

    async def test_non_object_body(self, server: RegistryHTTPServer) -> None:
        status, _ = await call(server, "/api/parcel_stats", body=[1, 2])
        assert status == 400

    @pytest.mark.parametrize("length", ["abc", "-5", "1.5"])
    async def test_malformed_content_length_is_bad_request(
        self, server: RegistryHTTPServer, length: str
    ) -> None:
        status, body = await call(
            server, "/api/parcel_stats", headers={"Content-Length": length}
        )
        assert status == 400
        assert body["message"] == "Invalid Content-Length header"

    @pytest.mark.parametrize(
        ("path", "args", "expected"),
        [
            ("/api/show_parcel", {"code": "bad"}, 400),
            ("/api/show_parcel", {"code": "150101-001-002-099"}, 404),
            ("/api/register_parcel", PARCEL_ARGS, 409),
        ],
    )
    async def test_domain_errors_map_to_status_codes(
        self,
        server: RegistryHTTPServer,
        path: str,
        args: dict[str, Any],
        expected: int,
    ) -> None:
        await call(server, "/api/register_parcel", body=PARCEL_ARGS)

        status, body = await call(server, path, body=args)

        assert status == expected
        assert body["status"] == "error"

    async def test_invalid_transition_is_conflict(
        self, server: RegistryHTTPServer
    ) -> None:
        await call(server, "/api/register_parcel", body=PARCEL_ARGS)
        await call(
            server,
            "/api/change_parcel_status",
            body={"code": PARCEL_ARGS["code"], "status": "FORMALIZED"},
        )

        status, body = await call(
            server,
            "/api/change_parcel_status",
            body={"code": PARCEL_ARGS["code"], "status": "ACTIVE"},
        )

        assert status == 409
        assert body["error"] == "invalid_state_transition"


@pytest.mark.asyncio
class TestRegistryHTTPServerAuth:
    async def test_missing_key_rejected(self, secured_server: RegistryHTTPServer) -> None:
        status, body = await call(secured_server, "/api/parcel_stats")
        assert status == 401
        assert "Unauthorized" in body["message"]

    async def test_wrong_key_rejected(self, secured_server: RegistryHTTPServer) -> None:
        status, _ = await call(
            secured_server,
            "/api/parcel_stats",
            headers={"Authorization": "Bearer wrong"},
        )
        assert status == 401

    @pytest.mark.parametrize(
        "headers",
        [{"Authorization": f"Bearer {API_KEY}"}, {"X-API-Key": API_KEY}],
    )
    async def test_valid_key_accepted(
        self, secured_server: RegistryHTTPServer, headers: dict[str, str]
    ) -> None:
        status, _ = await call(secured_server, "/api/parcel_stats", headers=headers)
        assert status == 200

    async def test_health_is_public(self, secured_server: RegistryHTTPServer) -> None:
        status, _ = await call(secured_server, "/health", method="GET")
        assert status == 200


@pytest.mark.asyncio
async def test_health_answers_while_a_command_is_running(
    commands: CLICommandHandler, server: RegistryHTTPServer
) -> None:
    started = asyncio.Event()
    release = asyncio.Event()
    parcel_stats = commands.parcel_stats

    async def slow_parcel_stats() -> dict[str, Any]:
        started.set()
        await release.wait()
        return await parcel_stats()

    commands.parcel_stats = slow_parcel_stats
    slow = asyncio.create_task(call(server, "/api/parcel_stats"))
    await asyncio.wait_for(started.wait(), timeout=5)

    status, _ = await call(server, "/health", method="GET")
    assert status == 200
    assert not slow.done()

    release.set()
    status, body = await slow
    assert status == 200
    assert body["stats"]["total"] == 0

@pytest.mark.asyncio
async def test_stop_releases_server(commands: CLICommandHandler) -> None:
    http_server = RegistryHTTPServer(commands, port=0)
    await http_server.start()
    assert http_server.bound_port

    await http_server.stop()

    assert http_server._server_task.done()

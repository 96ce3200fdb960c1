import unittest

from fakes import BASE_URL, FakeClock, MemoryCredentialStore, ScriptedTransport, json_response

from offline_sync.api import ApiClient, HttpResponse
from offline_sync.auth import TokenGuard
from offline_sync.core.errors import AuthRequired, NetworkUnreachable, ServerRejected, TransportError
from offline_sync.monitors import NetworkMonitor


class HttpResponseTests(unittest.TestCase):
    def test_only_2xx_is_ok(self) -> None:
        self.assertTrue(HttpResponse(status=200).ok)
        self.assertTrue(HttpResponse(status=299).ok)
        self.assertFalse(HttpResponse(status=199).ok)
        self.assertFalse(HttpResponse(status=304).ok)


class ApiClientTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.transport = ScriptedTransport()
        self.credentials = MemoryCredentialStore("token-1")
        self.guard = TokenGuard(self.credentials, clock=FakeClock())
        self.network = NetworkMonitor(debounce_seconds=0)
        self.api = ApiClient(
            base_url=BASE_URL + "/",
            transport=self.transport,
            token_guard=self.guard,
            network=self.network,
        )

    async def test_requests_carry_the_bearer_token(self) -> None:
        self.transport.queue("GET", "/profile", {"name": "Ada"})

        data = await self.api.get("/profile")

        self.assertEqual(data, {"name": "Ada"})
        call = self.transport.calls[0]
        self.assertEqual(call.headers["Authorization"], "Bearer token-1")
        self.assertEqual(call.headers["Content-Type"], "application/json")

    async def test_query_params_are_encoded(self) -> None:
        url = self.api.url_for("jobs", {"limit": 10, "active": True})
        self.assertEqual(url, "http://api.test/jobs?limit=10&active=true")

    async def test_unauthorized_clears_the_token(self) -> None:
        self.transport.queue("GET", "/profile", json_response({"error": "Token expired"}, status=401))

        with self.assertRaises(AuthRequired) as ctx:
            await self.api.get("/profile")

        self.assertEqual(str(ctx.exception), "Token expired")
        self.assertIsNone(self.guard.record.token)
        self.assertIsNone(self.credentials.token)

    async def test_forbidden_keeps_the_token(self) -> None:
        self.transport.queue("GET", "/admin", json_response({}, status=403))

        with self.assertRaises(AuthRequired):
            await self.api.get("/admin")
        self.assertEqual(self.guard.record.token, "token-1")

    async def test_rate_limit_and_server_errors_are_transport_errors(self) -> None:
        self.transport.queue("GET", "/busy", json_response({"error": "Slow down"}, status=429))
        self.transport.queue("GET", "/broken", HttpResponse(status=502, body=b"<html>Bad gateway</html>"))

        with self.assertRaises(TransportError) as busy:
            await self.api.get("/busy")
        self.assertEqual(busy.exception.status, 429)
        self.assertEqual(str(busy.exception), "Slow down")

        with self.assertRaises(TransportError) as broken:
            await self.api.get("/broken")
        self.assertEqual(str(broken.exception), "HTTP 502")

    async def test_client_errors_are_rejections_with_server_message(self) -> None:
        self.transport.queue(
            "GET",
            "/jobs/missing",
            json_response({"status": {"message": "Job not found"}}, status=404),
        )

        with self.assertRaises(ServerRejected) as ctx:
            await self.api.get("/jobs/missing")
        self.assertEqual(str(ctx.exception), "Job not found")
        self.assertEqual(ctx.exception.status, 404)

    async def test_invalid_json_on_success_is_a_transport_error(self) -> None:
        self.transport.queue("GET", "/profile", HttpResponse(status=200, body=b"not json"))

        with self.assertRaises(TransportError) as ctx:
            await self.api.get("/profile")
        self.assertEqual(str(ctx.exception), "Invalid JSON response from server")

    async def test_empty_body_decodes_to_none(self) -> None:
        self.transport.queue("POST", "/logout", HttpResponse(status=204))
        self.assertIsNone(await self.api.post("/logout", {}))

    async def test_offline_requests_are_not_sent(self) -> None:
        self.network.report(False)

        with self.assertRaises(NetworkUnreachable):
            await self.api.get("/profile")
        self.assertEqual(self.transport.calls, [])

    async def test_transport_failure_after_going_offline_is_network_unreachable(self) -> None:
        network = self.network

        class DroppingTransport(ScriptedTransport):
            async def send(self, method, url, *, headers, json_body=None):
                network.report(False)
                raise TransportError("Network request failed")

        api = ApiClient(base_url=BASE_URL, transport=DroppingTransport(), token_guard=self.guard, network=network)
        with self.assertRaises(NetworkUnreachable):
            await api.get("/profile")

    async def test_missing_credentials_fail_before_sending(self) -> None:
        self.credentials.token = None
        with self.assertRaises(AuthRequired):
            await self.api.get("/profile")
        self.assertEqual(self.transport.calls, [])


if __name__ == "__main__":
    unittest.main()

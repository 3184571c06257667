#!/usr/bin/env python3
"""
Tests for the provider adapters, the shared apply loop and the registry.
"""

import os
import tempfile
import unittest
from unittest.mock import MagicMock, patch

import dns.exception
import dns.rcode
import dns.zone

from dns_sync_manager.core.errors import (
    ConfigurationError,
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
    ProviderUnavailableError,
    UnsupportedProviderError,
)
from dns_sync_manager.core.models import (
    Actions,
    FilterRule,
    ProviderConfig,
    Record,
    RecordType,
    Role,
    SyncOptions,
    VendorType,
)
from dns_sync_manager.providers.base_provider import RetryPolicy
from dns_sync_manager.providers.bind_provider import BINDProvider, parse_bind_key_file
from dns_sync_manager.providers.memory_provider import MemoryDNSProvider
from dns_sync_manager.providers.registry import AdapterRegistry, default_registry

ZONE_TEXT = """
$TTL 300
@   IN SOA ns1.example.com. admin.example.com. 1 3600 600 86400 300
@   IN NS  ns1.example.com.
www IN A   192.0.2.10
www IN A   192.0.2.11
txt IN TXT "hello"
"""

KEY_FILE = """
key "update-key" {
    algorithm hmac-sha256;
    secret "c2VjcmV0c2VjcmV0c2VjcmV0";
};
"""


def make_config(provider_id="tgt", vendor=VendorType.MEMORY, credentials=None, include=None):
    return ProviderConfig(
        id=provider_id,
        name=provider_id.title(),
        vendor_type=vendor,
        role=Role.TARGET,
        credentials=credentials or {},
        include_filters=include or [],
        source_provider_ids=["src"],
    )


def make_record(name, content, record_type=RecordType.A, ttl=300, record_id="new"):
    return Record(
        id=record_id,
        type=record_type,
        name=name,
        content=content,
        ttl=ttl,
        zone_name="example.com",
    )


async def no_sleep(delay):
    no_sleep.delays.append(delay)


class TestRetryPolicy(unittest.TestCase):
    """Test the backoff schedule."""

    def test_exponential_delay_is_capped(self):
        policy = RetryPolicy(attempts=6, base_delay=0.5, max_delay=8.0)
        self.assertEqual([policy.delay(n) for n in range(1, 7)], [0.5, 1.0, 2.0, 4.0, 8.0, 8.0])


class TestMemoryDNSProvider(unittest.IsolatedAsyncioTestCase):
    """Test the in-memory provider and the shared apply loop."""

    def setUp(self):
        """Set up test fixtures."""
        self.provider = MemoryDNSProvider()
        self.provider.sleep = no_sleep
        no_sleep.delays = []
        self.config = make_config()
        self.provider.seed(
            "tgt",
            [
                {"type": "A", "name": "app.example.com", "content": "9.9.9.9", "ttl": 600},
                {"type": "TXT", "name": "old.example.com", "content": "x"},
            ],
            zone_name="example.com",
        )

    async def test_fetch_records(self):
        records = await self.provider.fetch_records(self.config)
        self.assertEqual([r.name for r in records], ["app.example.com", "old.example.com"])
        self.assertTrue(all(r.zone_name == "example.com" for r in records))
        self.assertNotEqual(records[0].id, records[1].id)

    async def test_seed_vendor_records(self):
        self.provider.seed(
            "src",
            [{"RecordId": "42", "Type": "A", "RR": "@", "Value": "192.0.2.1", "DomainName": "example.org"}],
            vendor_type=VendorType.ALIYUN,
        )
        records = self.provider.records("src")
        self.assertEqual(records[0].id, "42")
        self.assertEqual(records[0].name, "example.org")

    async def test_fetch_error_injection(self):
        self.provider.fetch_errors["tgt"] = ProviderUnavailableError("down")
        with self.assertRaises(ProviderUnavailableError):
            await self.provider.fetch_records(self.config)

    async def test_apply_records_converges(self):
        desired = [make_record("app.example.com", "1.2.3.4"), make_record("new.example.com", "5.6.7.8")]
        options = SyncOptions(overwrite_all=True, delete_extra=True)

        result = await self.provider.apply_records(self.config, desired, options)

        self.assertEqual((result.updated, result.created, result.deleted), (1, 1, 1))
        records = {r.name: r for r in self.provider.records("tgt")}
        self.assertEqual(sorted(records), ["app.example.com", "new.example.com"])
        self.assertEqual(records["app.example.com"].content, "1.2.3.4")
        self.assertEqual(records["app.example.com"].ttl, 300)

        again = await self.provider.apply_records(self.config, desired, options)
        self.assertEqual(again.succeeded, 0)

    async def test_apply_order(self):
        existing = await self.provider.fetch_records(self.config)
        actions = Actions(
            updates=[make_record("app.example.com", "1.2.3.4", record_id=existing[0].id)],
            creates=[make_record("new.example.com", "5.6.7.8")],
            deletes=[existing[1]],
        )
        await self.provider.apply_actions(self.config, actions)

        operations = [call[0] for call in self.provider.calls if call[0] != "fetch"]
        self.assertEqual(operations, ["update", "create", "delete"])

    async def test_transient_failure_is_retried(self):
        self.provider.fail_operation("create", "new.example.com", ProviderRateLimitError("slow down"), times=2)
        actions = Actions(creates=[make_record("new.example.com", "5.6.7.8")])

        result = await self.provider.apply_actions(
            self.config, actions, RetryPolicy(attempts=3, base_delay=0.5)
        )

        self.assertEqual(result.created, 1)
        self.assertEqual(result.failed_operations, [])
        self.assertEqual(no_sleep.delays, [0.5, 1.0])

    async def test_exhausted_retries_are_collected(self):
        self.provider.fail_operation("create", "bad.example.com", ProviderError("boom"))
        actions = Actions(
            creates=[make_record("bad.example.com", "1.1.1.1"), make_record("good.example.com", "2.2.2.2")]
        )

        result = await self.provider.apply_actions(self.config, actions, RetryPolicy(attempts=2))

        self.assertEqual(result.created, 1)
        self.assertEqual(len(result.failed_operations), 1)
        failed = result.failed_operations[0]
        self.assertEqual(failed.action, "create")
        self.assertEqual(failed.record.name, "bad.example.com")
        self.assertEqual(failed.reason, "boom")
        attempts = [c for c in self.provider.calls if c == ("create", "tgt", "bad.example.com")]
        self.assertEqual(len(attempts), 2)

    async def test_auth_error_aborts_without_retry(self):
        self.provider.fail_operation("create", "new.example.com", ProviderAuthError("denied"))
        actions = Actions(
            creates=[make_record("new.example.com", "5.6.7.8"), make_record("other.example.com", "1.1.1.1")]
        )

        with self.assertRaises(ProviderAuthError):
            await self.provider.apply_actions(self.config, actions)

        creates = [c for c in self.provider.calls if c[0] == "create"]
        self.assertEqual(creates, [("create", "tgt", "new.example.com")])

    async def test_missing_record_update_fails(self):
        actions = Actions(updates=[make_record("ghost.example.com", "1.1.1.1", record_id="ghost")])
        result = await self.provider.apply_actions(self.config, actions, RetryPolicy(attempts=1))
        self.assertEqual(len(result.failed_operations), 1)


class TestAdapterRegistry(unittest.TestCase):
    """Test adapter selection by vendor type."""

    def test_get(self):
        memory = MemoryDNSProvider()
        registry = AdapterRegistry({VendorType.MEMORY: memory})
        self.assertIs(registry.get("memory"), memory)
        self.assertIn(VendorType.MEMORY, registry)
        self.assertNotIn("cloudflare", registry)
        self.assertNotIn("route53", registry)

    def test_unsupported(self):
        registry = AdapterRegistry()
        with self.assertRaises(UnsupportedProviderError):
            registry.get("route53")
        with self.assertRaises(UnsupportedProviderError) as ctx:
            registry.for_provider(make_config(vendor=VendorType.CLOUDFLARE))
        self.assertEqual(ctx.exception.provider, "Tgt")

    def test_default_registry(self):
        registry = default_registry(bind_timeout=5)
        self.assertIsInstance(registry.get(VendorType.BIND), BINDProvider)
        self.assertEqual(registry.get(VendorType.BIND).timeout, 5)
        self.assertIsInstance(registry.get(VendorType.MEMORY), MemoryDNSProvider)


class TestBINDProvider(unittest.IsolatedAsyncioTestCase):
    """Test the BIND provider without a running nameserver."""

    def setUp(self):
        """Set up test fixtures."""
        self.provider = BINDProvider(timeout=2)
        self.config = make_config(
            "bind",
            VendorType.BIND,
            credentials={"nameserver": "127.0.0.1", "port": 5353, "zones": ["example.com"]},
        )

    def test_parse_bind_key_file(self):
        self.assertEqual(parse_bind_key_file(KEY_FILE, "update-key"), "c2VjcmV0c2VjcmV0c2VjcmV0")
        self.assertIsNone(parse_bind_key_file(KEY_FILE, "other-key"))

    def test_keyring_from_key_file(self):
        with tempfile.NamedTemporaryFile("w", suffix=".conf", delete=False) as f:
            f.write(KEY_FILE)
        self.addCleanup(os.unlink, f.name)
        config = make_config(
            "bind",
            VendorType.BIND,
            credentials={"nameserver": "127.0.0.1", "key_name": "update-key", "key_file": f.name},
        )

        keyring = self.provider._keyring(config)

        self.assertIsNotNone(keyring)
        self.assertIs(self.provider._keyring(config), keyring)

    def test_keyring_missing_key(self):
        with tempfile.NamedTemporaryFile("w", suffix=".conf", delete=False) as f:
            f.write(KEY_FILE)
        self.addCleanup(os.unlink, f.name)
        config = make_config(
            "bind",
            VendorType.BIND,
            credentials={"nameserver": "127.0.0.1", "key_name": "other-key", "key_file": f.name},
        )
        with self.assertRaises(ConfigurationError):
            self.provider._keyring(config)

    def test_keyring_bad_secret(self):
        config = make_config(
            "bind",
            VendorType.BIND,
            credentials={"nameserver": "127.0.0.1", "key_name": "update-key", "key_secret": "not-base64!"},
        )
        with self.assertRaises(ConfigurationError) as ctx:
            self.provider._keyring(config)
        self.assertIn("update-key", str(ctx.exception))

    @patch("dns_sync_manager.providers.bind_provider.dns.query.tcp")
    async def test_unparseable_record_does_not_stop_apply(self, mock_tcp):
        response = MagicMock()
        response.rcode.return_value = dns.rcode.NOERROR
        mock_tcp.return_value = response
        self.provider.sleep = no_sleep
        no_sleep.delays = []
        actions = Actions(
            creates=[
                make_record("example.com", "mx.example.com", record_type=RecordType.MX),
                make_record("app.example.com", "192.0.2.30"),
            ]
        )

        result = await self.provider.apply_actions(self.config, actions, RetryPolicy(attempts=3))

        self.assertEqual(result.created, 1)
        self.assertEqual(len(result.failed_operations), 1)
        failed = result.failed_operations[0]
        self.assertEqual(failed.record.type, RecordType.MX)
        self.assertIn("mx.example.com", failed.reason)
        self.assertEqual(no_sleep.delays, [])
        mock_tcp.assert_called_once()

    @patch("dns_sync_manager.providers.bind_provider.dns.query.tcp")
    async def test_bad_key_secret_fails_the_apply(self, mock_tcp):
        config = make_config(
            "bind",
            VendorType.BIND,
            credentials={
                "nameserver": "127.0.0.1",
                "zones": ["example.com"],
                "key_name": "update-key",
                "key_secret": "not-base64!",
            },
        )
        actions = Actions(creates=[make_record("app.example.com", "192.0.2.30")])

        with self.assertRaises(ConfigurationError):
            await self.provider.apply_actions(config, actions)
        mock_tcp.assert_not_called()

    def test_zones(self):
        self.assertEqual(self.provider._zones(self.config), ["example.com"])

        from_filters = make_config(
            "bind",
            VendorType.BIND,
            credentials={"nameserver": "127.0.0.1"},
            include=[FilterRule("example.org"), FilterRule("*.example.net")],
        )
        self.assertEqual(self.provider._zones(from_filters), ["example.org"])

        with self.assertRaises(ConfigurationError):
            self.provider._zones(make_config("bind", VendorType.BIND, credentials={"nameserver": "x"}))

    def test_missing_nameserver(self):
        with self.assertRaises(ConfigurationError):
            self.provider._server(make_config("bind", VendorType.BIND))

    @patch("dns_sync_manager.providers.bind_provider.dns.zone.from_xfr")
    @patch("dns_sync_manager.providers.bind_provider.dns.query.xfr")
    async def test_fetch_records(self, mock_xfr, mock_from_xfr):
        mock_from_xfr.return_value = dns.zone.from_text(ZONE_TEXT, origin="example.com")

        records = await self.provider.fetch_records(self.config)

        mock_xfr.assert_called_once()
        self.assertEqual(mock_xfr.call_args.args[:2], ("127.0.0.1", "example.com"))
        self.assertEqual(mock_xfr.call_args.kwargs["port"], 5353)

        by_type = {}
        for record in records:
            by_type.setdefault(record.type, []).append(record)
        self.assertEqual(
            by_type[RecordType.SOA][0].content,
            "ns1.example.com. admin.example.com. 1 3600 600 86400 300",
        )
        self.assertEqual(by_type[RecordType.NS][0].name, "example.com")
        self.assertEqual(by_type[RecordType.NS][0].content, "ns1.example.com.")
        self.assertEqual(
            sorted(r.content for r in by_type[RecordType.A]), ["192.0.2.10", "192.0.2.11"]
        )
        self.assertTrue(all(r.name == "www.example.com" for r in by_type[RecordType.A]))
        self.assertEqual(by_type[RecordType.TXT][0].content, '"hello"')
        self.assertTrue(all(r.zone_name == "example.com" for r in records))
        self.assertEqual(len({r.id for r in records}), len(records))

    @patch("dns_sync_manager.providers.bind_provider.dns.query.xfr")
    async def test_fetch_timeout(self, mock_xfr):
        mock_xfr.side_effect = dns.exception.Timeout()
        with self.assertRaises(ProviderUnavailableError):
            await self.provider.fetch_records(self.config)

    def test_update_messages(self):
        record = make_record("www.example.com", "192.0.2.20")
        for action in ("add", "replace", "delete"):
            with self.subTest(action=action):
                message = self.provider._create_update_message(self.config, record, action).to_text()
                self.assertIn("www.example.com.", message)
                self.assertIn("192.0.2.20", message)

        with self.assertRaises(ValueError):
            self.provider._create_update_message(self.config, record, "upsert")

    @patch("dns_sync_manager.providers.bind_provider.dns.query.tcp")
    async def test_create_record(self, mock_tcp):
        response = MagicMock()
        response.rcode.return_value = dns.rcode.NOERROR
        mock_tcp.return_value = response

        await self.provider.create_record(self.config, make_record("www.example.com", "192.0.2.20"))

        mock_tcp.assert_called_once()
        self.assertEqual(mock_tcp.call_args.args[1], "127.0.0.1")

    @patch("dns_sync_manager.providers.bind_provider.dns.query.tcp")
    async def test_update_refused_is_auth_error(self, mock_tcp):
        response = MagicMock()
        response.rcode.return_value = dns.rcode.REFUSED
        mock_tcp.return_value = response

        with self.assertRaises(ProviderAuthError):
            await self.provider.update_record(self.config, make_record("www.example.com", "192.0.2.20"))

    @patch("dns_sync_manager.providers.bind_provider.dns.query.tcp")
    async def test_update_servfail_is_provider_error(self, mock_tcp):
        response = MagicMock()
        response.rcode.return_value = dns.rcode.SERVFAIL
        mock_tcp.return_value = response

        with self.assertRaises(ProviderError) as ctx:
            await self.provider.delete_record(self.config, make_record("www.example.com", "192.0.2.20"))
        self.assertNotIsInstance(ctx.exception, ProviderAuthError)
        self.assertIn("SERVFAIL", str(ctx.exception))

    @patch("dns_sync_manager.providers.bind_provider.dns.query.tcp")
    async def test_unreachable_server(self, mock_tcp):
        mock_tcp.side_effect = ConnectionRefusedError("refused")
        with self.assertRaises(ProviderUnavailableError):
            await self.provider.create_record(self.config, make_record("www.example.com", "192.0.2.20"))


if __name__ == "__main__":
    unittest.main()

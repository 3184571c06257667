#!/usr/bin/env python3
"""
Tests for the command line interface and configuration loading.
"""

import io
import os
import tempfile
import unittest
from unittest.mock import patch

import yaml
from rich.console import Console

from dns_sync_manager.cli.main import build_orchestrator, get_default_config, load_config, main
from dns_sync_manager.core.errors import ConfigurationError
from dns_sync_manager.core.models import VendorType
from dns_sync_manager.providers.memory_provider import MemoryDNSProvider
from dns_sync_manager.providers.registry import AdapterRegistry
from dns_sync_manager.storage.config_store import YAMLConfigStore

PROVIDERS = [
    {"id": "src", "name": "Source", "type": "memory", "role": "source"},
    {
        "id": "tgt",
        "name": "Target",
        "type": "memory",
        "role": "target",
        "source_provider_ids": ["src"],
        "credentials": {"token": "secret"},
    },
]


class TestLoadConfig(unittest.TestCase):
    """Test configuration file handling."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)

    def write(self, content):
        path = os.path.join(self.temp_dir.name, "config.yaml")
        with open(path, "w") as f:
            f.write(content)
        return path

    def test_missing_file_uses_defaults(self):
        config = load_config(os.path.join(self.temp_dir.name, "missing.yaml"))
        self.assertEqual(config, get_default_config())

    def test_sections_are_merged_with_defaults(self):
        config = load_config(self.write("sync:\n  delete_extra: true\n"))
        self.assertTrue(config["sync"]["delete_extra"])
        self.assertTrue(config["sync"]["overwrite_all"])
        self.assertEqual(config["storage"]["history_limit"], 50)
        self.assertEqual(config["providers"], [])

    def test_invalid_yaml(self):
        with self.assertRaises(ConfigurationError):
            load_config(self.write("sync: [unclosed\n"))

    def test_non_mapping(self):
        with self.assertRaises(ConfigurationError):
            load_config(self.write("- a\n- b\n"))

    def test_build_orchestrator(self):
        config = get_default_config()
        config["storage"]["path"] = os.path.join(self.temp_dir.name, "state.yaml")
        config["sync"].update({"target_concurrency": 3, "retry_attempts": 5, "delete_extra": True})

        orchestrator = build_orchestrator(config)

        self.assertEqual(orchestrator.settings.target_concurrency, 3)
        self.assertEqual(orchestrator.settings.retry.attempts, 5)
        self.assertTrue(orchestrator.sync_settings.get_sync_options().delete_extra)
        self.assertIn(VendorType.BIND, orchestrator.registry)

    def test_build_orchestrator_rejects_bad_limits(self):
        config = get_default_config()
        config["sync"]["fetch_concurrency"] = 0
        with self.assertRaises(ConfigurationError):
            build_orchestrator(config)


class TestCommands(unittest.TestCase):
    """Run CLI commands against a temporary state file and the memory adapter."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.state_path = os.path.join(self.temp_dir.name, "state.yaml")
        self.config_path = os.path.join(self.temp_dir.name, "config.yaml")
        with open(self.config_path, "w") as f:
            yaml.safe_dump(
                {
                    "storage": {"path": self.state_path},
                    "sync": {"retry_base_delay": 0},
                    "providers": PROVIDERS,
                },
                f,
            )

        self.memory = MemoryDNSProvider()
        self.memory.seed(
            "src",
            [{"type": "A", "name": "app.example.com", "content": "192.0.2.1", "zone_name": "example.com"}],
        )
        registry_patch = patch(
            "dns_sync_manager.cli.main.default_registry",
            return_value=AdapterRegistry({VendorType.MEMORY: self.memory}),
        )
        registry_patch.start()
        self.addCleanup(registry_patch.stop)

        self.output = io.StringIO()
        console_patch = patch(
            "dns_sync_manager.cli.main.console", Console(file=self.output, width=200)
        )
        console_patch.start()
        self.addCleanup(console_patch.stop)

    def run_cli(self, *args):
        with self.assertRaises(SystemExit) as ctx:
            main(["--config", self.config_path, *args])
        return ctx.exception.code

    def test_import_and_list_providers(self):
        self.assertEqual(self.run_cli("import-providers"), 0)
        self.assertEqual(self.run_cli("providers"), 0)

        self.assertIn("Target", self.output.getvalue())
        self.assertNotIn("secret", self.output.getvalue())
        stored = YAMLConfigStore(self.state_path).get("dns_providers")
        self.assertEqual([item["id"] for item in stored], ["src", "tgt"])

    def test_run_and_history(self):
        self.run_cli("import-providers")

        self.assertEqual(self.run_cli("run"), 0)
        self.assertEqual([r.name for r in self.memory.records("tgt")], ["app.example.com"])

        self.assertEqual(self.run_cli("history", "--limit", "5"), 0)
        self.assertIn("succeeded", self.output.getvalue())

        self.assertEqual(self.run_cli("clear-history"), 0)
        self.assertEqual(YAMLConfigStore(self.state_path).get("sync_history"), [])

    def test_run_without_providers_fails(self):
        self.assertEqual(self.run_cli("run"), 1)
        self.assertIn("Configuration error", self.output.getvalue())

    def test_failed_target_exit_code(self):
        self.run_cli("import-providers")
        self.memory.fetch_errors["src"] = ConfigurationError("unreachable")
        self.assertEqual(self.run_cli("run"), 1)

    def test_plan_writes_output_file(self):
        self.run_cli("import-providers")
        output_file = os.path.join(self.temp_dir.name, "plan.txt")

        self.assertEqual(self.run_cli("--output-file", output_file, "plan", "tgt"), 0)

        with open(output_file) as f:
            content = f.read()
        self.assertIn("RECORDS TO CREATE", content)
        self.assertIn("app.example.com", content)
        self.assertEqual(self.memory.records("tgt"), [])

    def test_output_file_requires_plan(self):
        self.assertEqual(self.run_cli("--output-file", "x.txt", "run"), 1)

    def test_options(self):
        self.assertEqual(self.run_cli("options", "--delete-extra", "--no-overwrite-all"), 0)

        stored = YAMLConfigStore(self.state_path).get("sync_config")
        self.assertEqual(stored["syncOptions"], {"overwriteAll": False, "deleteExtra": True})

    def test_delete_provider(self):
        self.run_cli("import-providers")
        self.assertEqual(self.run_cli("delete-provider", "tgt"), 0)
        self.assertEqual(self.run_cli("delete-provider", "tgt"), 1)

    def test_schedule_once(self):
        self.run_cli("import-providers")
        self.assertEqual(self.run_cli("schedule", "--once"), 0)
        self.assertEqual(len(YAMLConfigStore(self.state_path).get("sync_history")), 1)


if __name__ == "__main__":
    unittest.main()

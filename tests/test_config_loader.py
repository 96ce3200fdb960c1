import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from pydantic import ValidationError

from offline_sync.config import AppConfig, ConfigLoadRequest, YamlConfigLoader
from offline_sync.config.models import LoggingSettings
from offline_sync.logging import init_logging

PREFIX = "OSYNC_TEST__"


class YamlConfigLoaderTests(unittest.IsolatedAsyncioTestCase):
    def write_config(self, tmp: str, text: str) -> Path:
        path = Path(tmp) / "config.yaml"
        path.write_text(text, encoding="utf-8")
        return path

    async def load(self, tmp: str, text: str, dotenv_path=None) -> AppConfig:
        path = self.write_config(tmp, text)
        request = ConfigLoadRequest(yaml_path=str(path), env_prefix=PREFIX, dotenv_path=dotenv_path)
        return await YamlConfigLoader().load(request)

    async def test_omitted_sections_use_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp, mock.patch.dict(os.environ, {}, clear=False):
            config = await self.load(tmp, 'api:\n  base_url: "http://localhost:3000/api/v1"\n')

        self.assertEqual(config.api.base_url, "http://localhost:3000/api/v1")
        self.assertEqual(config.cache.stale_after_seconds, 300.0)
        self.assertEqual(config.cache.gc_after_seconds, 86400.0)
        self.assertEqual(config.retry.max_attempts, 3)
        self.assertEqual(config.jobs.poll_interval_seconds, 2.0)
        self.assertEqual(config.network.debounce_seconds, 1.0)

    async def test_environment_overrides_yaml(self) -> None:
        overrides = {
            f"{PREFIX}CACHE__STALE_AFTER_SECONDS": "60",
            f"{PREFIX}JOBS__MAX_BACKGROUND_POLLS": "5",
            f"{PREFIX}LOGGING__LEVEL": "DEBUG",
        }
        with tempfile.TemporaryDirectory() as tmp, mock.patch.dict(os.environ, overrides):
            config = await self.load(
                tmp,
                'api:\n  base_url: "http://localhost"\ncache:\n  stale_after_seconds: 120\n',
            )

        self.assertEqual(config.cache.stale_after_seconds, 60.0)
        self.assertEqual(config.jobs.max_background_polls, 5)
        self.assertEqual(config.logging.level, "DEBUG")

    async def test_dotenv_values_fill_missing_settings(self) -> None:
        with tempfile.TemporaryDirectory() as tmp, mock.patch.dict(os.environ, {}, clear=False):
            dotenv = Path(tmp) / ".env"
            dotenv.write_text(f"{PREFIX}API__BASE_URL=https://api.example.org\n", encoding="utf-8")
            config = await self.load(tmp, "retry:\n  max_attempts: 2\n", dotenv_path=str(dotenv))

        self.assertEqual(config.api.base_url, "https://api.example.org")
        self.assertEqual(config.retry.max_attempts, 2)

    async def test_unknown_override_keys_are_rejected(self) -> None:
        for name in (f"{PREFIX}API__BOGUS", f"{PREFIX}CACHES__STALE_AFTER_SECONDS", f"{PREFIX}API__BASE_URL__HOST"):
            with self.subTest(name=name):
                with tempfile.TemporaryDirectory() as tmp, mock.patch.dict(os.environ, {name: "1"}):
                    with self.assertRaises(ValueError) as ctx:
                        await self.load(tmp, 'api:\n  base_url: "http://localhost"\n')
                self.assertIn(name, str(ctx.exception))

    async def test_nested_sections_can_be_overridden(self) -> None:
        overrides = {f"{PREFIX}LOGGING__FILE__ROTATION__BACKUP_COUNT": "3"}
        with tempfile.TemporaryDirectory() as tmp, mock.patch.dict(os.environ, overrides):
            config = await self.load(tmp, 'api:\n  base_url: "http://localhost"\n')

        self.assertEqual(config.logging.file.rotation.backup_count, 3)

    async def test_invalid_override_values_fail_validation(self) -> None:
        overrides = {f"{PREFIX}RETRY__MAX_ATTEMPTS": "zero"}
        with tempfile.TemporaryDirectory() as tmp, mock.patch.dict(os.environ, overrides):
            with self.assertRaises(ValidationError):
                await self.load(tmp, 'api:\n  base_url: "http://localhost"\n')

    async def test_top_level_must_be_a_mapping(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ValueError):
                await self.load(tmp, "- just\n- a list\n")


class InitLoggingTests(unittest.TestCase):
    def test_invalid_level_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            init_logging(LoggingSettings(level="LOUD"))


if __name__ == "__main__":
    unittest.main()

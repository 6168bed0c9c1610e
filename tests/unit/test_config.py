"""Tests for StudioConfig validation and CredentialStore persistence."""

from __future__ import annotations

import json
import os
import stat

import pytest

from catalogstudio.config import CredentialStore, StudioConfig
from catalogstudio.models import Credentials


class TestStudioConfigDefaults:
    def test_defaults(self):
        cfg = StudioConfig()
        assert cfg.storefront_base_url == "https://www.oechsle.pe"
        assert cfg.jpeg_quality == 92
        assert cfg.default_generated_size == 1024
        assert cfg.normalize_max_concurrent == 8
        assert cfg.describe_max_concurrent == 4
        assert cfg.retry_max_attempts == 3
        assert cfg.metrics is None
        assert cfg.debug_dump_payload is False

    def test_repr_masks_ai_key(self):
        cfg = StudioConfig(ai_api_key="super-secret-key-9876")
        text = repr(cfg)
        assert "super-secret" not in text
        assert "...9876" in text

    def test_repr_short_key(self):
        assert "ai_api_key='****'" in repr(StudioConfig(ai_api_key="ab"))


class TestStudioConfigValidation:
    def test_rejects_plain_http_remote(self):
        with pytest.raises(ValueError, match="insecure HTTP"):
            StudioConfig(storefront_base_url="http://www.oechsle.pe")

    def test_allows_plain_http_localhost(self):
        cfg = StudioConfig(ai_base_url="http://localhost:8080/v1beta")
        assert cfg.ai_base_url.startswith("http://localhost")

    def test_rejects_non_http_scheme(self):
        with pytest.raises(ValueError, match="http"):
            StudioConfig(storefront_base_url="ftp://example.com")

    @pytest.mark.parametrize("quality", [0, 96, -1])
    def test_rejects_out_of_range_quality(self, quality):
        with pytest.raises(ValueError, match="jpeg_quality"):
            StudioConfig(jpeg_quality=quality)

    @pytest.mark.parametrize(
        "field_name",
        [
            "max_image_bytes",
            "default_generated_size",
            "normalize_max_concurrent",
            "describe_max_concurrent",
            "retry_max_attempts",
            "timeout_seconds",
        ],
    )
    def test_rejects_zero(self, field_name):
        with pytest.raises(ValueError, match=field_name):
            StudioConfig(**{field_name: 0})

    def test_rejects_negative_delays(self):
        with pytest.raises(ValueError, match="retry_base_delay"):
            StudioConfig(retry_base_delay=-1.0)
        with pytest.raises(ValueError, match="retry_max_delay"):
            StudioConfig(retry_max_delay=-1.0)


class TestCredentialStore:
    def _creds(self) -> Credentials:
        return Credentials(account_name="oechsle", app_key="vtexappkey-abc", app_token="TOKEN123")

    def test_load_missing_file_returns_none(self, tmp_path):
        assert CredentialStore(tmp_path / "nope.json").load() is None

    def test_save_then_load(self, tmp_path):
        store = CredentialStore(tmp_path / "creds.json")
        store.save(self._creds())
        assert store.load() == self._creds()

    def test_save_writes_json(self, tmp_path):
        path = tmp_path / "nested" / "creds.json"
        CredentialStore(path).save(self._creds())
        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw == {
            "account_name": "oechsle",
            "app_key": "vtexappkey-abc",
            "app_token": "TOKEN123",
            "environment": "vtexcommercestable",
        }

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_save_restricts_permissions(self, tmp_path):
        path = tmp_path / "creds.json"
        CredentialStore(path).save(self._creds())
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_malformed_json_loads_as_none(self, tmp_path):
        path = tmp_path / "creds.json"
        path.write_text("{not json", encoding="utf-8")
        assert CredentialStore(path).load() is None

    def test_missing_keys_load_as_none(self, tmp_path):
        path = tmp_path / "creds.json"
        path.write_text(json.dumps({"account_name": "oechsle"}), encoding="utf-8")
        assert CredentialStore(path).load() is None

    def test_environment_defaults_when_absent(self, tmp_path):
        path = tmp_path / "creds.json"
        path.write_text(
            json.dumps({"account_name": "a", "app_key": "k", "app_token": "t"}),
            encoding="utf-8",
        )
        creds = CredentialStore(path).load()
        assert creds is not None
        assert creds.environment == "vtexcommercestable"

    def test_clear_removes_file(self, tmp_path):
        store = CredentialStore(tmp_path / "creds.json")
        store.save(self._creds())
        store.clear()
        assert not store.path.exists()
        store.clear()

    def test_credentials_repr_hides_secrets(self):
        text = repr(self._creds())
        assert "TOKEN123" not in text
        assert "vtexappkey-abc" not in text
        assert "oechsle" in text

"""
Tests for module status loading (module_audit/status.py).
"""

import json
import threading
import time

import pytest

from module_audit.errors import AuditError, ErrorKind
from module_audit.models import ModuleStatus
from module_audit.status import DeploymentConfigStatusSource, StatusCache, parse_php_modules


class CountingSource:
    """Status source counting how often it is loaded."""

    def __init__(self, statuses, delay=0.0):
        self.statuses = statuses
        self.delay = delay
        self.loads = 0

    def load_statuses(self):
        self.loads += 1
        time.sleep(self.delay)
        return dict(self.statuses)


class TestParsePhpModules:
    """Tests for the config.php modules parser."""

    def test_short_array(self):
        content = "<?php\nreturn [\n    'modules' => [\n        'Acme_Blog' => 1,\n        'Acme_Shop' => 0\n    ]\n];\n"
        assert parse_php_modules(content) == {"Acme_Blog": "1", "Acme_Shop": "0"}

    def test_long_array_syntax(self):
        content = "<?php\nreturn array(\n  'modules' => array(\n    \"Acme_Blog\" => 1,\n  ),\n);\n"
        assert parse_php_modules(content) == {"Acme_Blog": "1"}

    def test_stops_at_end_of_block(self):
        content = "<?php return ['modules' => ['Acme_Blog' => 1], 'cache_types' => ['config' => 1]];"
        assert parse_php_modules(content) == {"Acme_Blog": "1"}

    def test_no_modules_key(self):
        assert parse_php_modules("<?php return ['db' => []];") is None


class TestDeploymentConfigStatusSource:
    """Tests for DeploymentConfigStatusSource."""

    def test_php(self, installation):
        path = installation.write_status({"Acme_Blog": 1, "Acme_Shop": 0})
        statuses = DeploymentConfigStatusSource(path).load_statuses()
        assert statuses == {"Acme_Blog": ModuleStatus.ENABLED, "Acme_Shop": ModuleStatus.DISABLED}

    def test_yaml(self, tmp_path):
        path = tmp_path / "modules.yml"
        path.write_text("modules:\n  Acme_Blog: true\n  Acme_Shop: false\n")
        statuses = DeploymentConfigStatusSource(path).load_statuses()
        assert statuses == {"Acme_Blog": ModuleStatus.ENABLED, "Acme_Shop": ModuleStatus.DISABLED}

    def test_json(self, tmp_path):
        path = tmp_path / "modules.json"
        path.write_text(json.dumps({"modules": {"Acme_Blog": 1}}))
        assert DeploymentConfigStatusSource(path).load_statuses() == {"Acme_Blog": ModuleStatus.ENABLED}

    def test_missing_file(self, tmp_path):
        with pytest.raises(AuditError) as exc_info:
            DeploymentConfigStatusSource(tmp_path / "config.php").load_statuses()
        assert exc_info.value.kind == ErrorKind.CONFIG_SOURCE_MISSING
        assert exc_info.value.details["key"] == "modules"

    def test_missing_modules_key(self, tmp_path):
        path = tmp_path / "config.php"
        path.write_text("<?php return ['db' => []];")
        with pytest.raises(AuditError) as exc_info:
            DeploymentConfigStatusSource(path).load_statuses()
        assert exc_info.value.kind == ErrorKind.CONFIG_SOURCE_MISSING

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "modules.yml"
        path.write_text("modules: [unclosed")
        with pytest.raises(AuditError) as exc_info:
            DeploymentConfigStatusSource(path).load_statuses()
        assert exc_info.value.kind == ErrorKind.MALFORMED_METADATA


class TestStatusCache:
    """Tests for StatusCache."""

    def test_unknown_module(self):
        cache = StatusCache(CountingSource({"Acme_Blog": ModuleStatus.ENABLED}))
        assert cache.status_of("Acme_Blog") == ModuleStatus.ENABLED
        assert cache.status_of("Acme_Other") == ModuleStatus.UNKNOWN

    def test_loaded_once(self):
        source = CountingSource({"Acme_Blog": ModuleStatus.DISABLED})
        cache = StatusCache(source)
        for _ in range(5):
            cache.status_of("Acme_Blog")
        assert source.loads == 1

    def test_loaded_once_across_threads(self):
        source = CountingSource({"Acme_Blog": ModuleStatus.ENABLED}, delay=0.05)
        cache = StatusCache(source)
        results = []

        def worker():
            results.append(cache.status_of("Acme_Blog"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert source.loads == 1
        assert results == [ModuleStatus.ENABLED] * 8

    def test_failed_load_is_retried(self, tmp_path):
        """Test a failed load leaves the cache empty for the next caller."""
        path = tmp_path / "config.php"
        cache = StatusCache(DeploymentConfigStatusSource(path))
        with pytest.raises(AuditError):
            cache.status_of("Acme_Blog")

        path.write_text("<?php return ['modules' => ['Acme_Blog' => 1]];")
        assert cache.status_of("Acme_Blog") == ModuleStatus.ENABLED

"""
Tests for the audit data model and error taxonomy.
"""

from pathlib import Path

import pytest

from module_audit.errors import AuditError, ErrorKind
from module_audit.models import (
    PARAMETER_N_A,
    VERSION_NOT_FOUND,
    InstallationType,
    ModuleRecord,
    ModuleStatus,
)


def populated(**overrides):
    values = {
        "name": "Vendor_Foo",
        "package_name": "vendor/foo",
        "installed_version": "1.2",
        "latest_version": "1.2.0.0",
        "installation_type": InstallationType.PACKAGE_MANAGED,
        "status": ModuleStatus.ENABLED,
    }
    values.update(overrides)
    return ModuleRecord(**values)


class TestModuleStatus:
    """Tests for ModuleStatus."""

    @pytest.mark.parametrize("flag", [1, "1", True, "true", "enabled", " TRUE "])
    def test_enabled_flags(self, flag):
        assert ModuleStatus.from_flag(flag) == ModuleStatus.ENABLED

    @pytest.mark.parametrize("flag", [0, "0", False, "false", "disabled"])
    def test_disabled_flags(self, flag):
        assert ModuleStatus.from_flag(flag) == ModuleStatus.DISABLED

    @pytest.mark.parametrize("flag", [None, 2, "maybe", [1]])
    def test_unknown_flags(self, flag):
        assert ModuleStatus.from_flag(flag) == ModuleStatus.UNKNOWN

    def test_caption(self):
        assert ModuleStatus.DISABLED.caption == "Disabled"


class TestModuleRecord:
    """Tests for ModuleRecord."""

    def test_empty_record(self):
        record = ModuleRecord()
        assert not record.is_populated
        assert record.installation_type == InstallationType.UNKNOWN
        assert record.status == ModuleStatus.UNKNOWN

    @pytest.mark.parametrize("attribute", ["display_latest_version", "update_available", "status_caption"])
    def test_unpopulated_reads_rejected(self, attribute):
        with pytest.raises(ValueError, match="not been populated"):
            getattr(ModuleRecord(), attribute)

    def test_unpopulated_to_dict_rejected(self):
        with pytest.raises(ValueError):
            ModuleRecord().to_dict()

    def test_precision_only_difference(self):
        record = populated()
        assert record.display_latest_version == "1.2"
        assert record.update_available is False

    def test_update_available(self):
        record = populated(installed_version="1.2.0", latest_version="1.3")
        assert record.display_latest_version == "1.3.0"
        assert record.update_available is True

    def test_sentinels(self):
        assert populated(installed_version=VERSION_NOT_FOUND).update_available is False
        assert populated(latest_version=PARAMETER_N_A).update_available is False

    def test_to_dict(self):
        record = populated(installed_version="1.0.0 (setup_version)", latest_version="1.1.0")
        assert record.to_dict() == {
            "name": "Vendor_Foo",
            "package_name": "vendor/foo",
            "installed_version": "1.0.0 (setup_version)",
            "latest_version": "1.1.0",
            "display_latest_version": "1.1.0",
            "installation_type": "Composer",
            "status": "enabled",
            "update_available": True,
        }


class TestAuditError:
    """Tests for AuditError messages and payload."""

    def test_not_registered(self):
        error = AuditError(ErrorKind.NOT_REGISTERED, module="Acme_Blog")
        assert str(error) == "Module with name Acme_Blog not found or not registered"
        assert error.kind == ErrorKind.NOT_REGISTERED
        assert error.details == {"module": "Acme_Blog"}

    def test_missing_property(self):
        error = AuditError(ErrorKind.MISSING_PROPERTY, field="name", file=Path("/m/composer.json"))
        assert str(error) == "Property name not found in /m/composer.json"

    def test_reason_appended(self):
        error = AuditError(ErrorKind.MALFORMED_METADATA, file="composer.lock", reason="file is empty")
        assert str(error) == "Wrong metadata file composer.lock: file is empty"

    def test_missing_detail_placeholder(self):
        assert str(AuditError(ErrorKind.REPOSITORY_UNREACHABLE)) == "Wrong repository link: ?"

    def test_to_dict(self):
        error = AuditError(ErrorKind.CONFIG_SOURCE_MISSING, key="modules", file=Path("app/etc/config.php"))
        assert error.to_dict() == {
            "kind": "config_source_missing",
            "message": "Key 'modules' not found in deployment config app/etc/config.php",
            "key": "modules",
            "file": "app/etc/config.php",
        }

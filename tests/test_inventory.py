"""
Tests for module discovery (module_audit/inventory.py).
"""

import pytest

from module_audit.errors import AuditError, ErrorKind
from module_audit.inventory import ModuleRegistry, parse_registration


class TestParseRegistration:
    """Tests for registration.php parsing."""

    def test_module_registration(self):
        content = (
            "<?php\n"
            "\\Magento\\Framework\\Component\\ComponentRegistrar::register(\n"
            "    \\Magento\\Framework\\Component\\ComponentRegistrar::MODULE,\n"
            "    'Vendor_Foo',\n"
            "    __DIR__\n"
            ");\n"
        )
        assert parse_registration(content) == "Vendor_Foo"

    def test_double_quotes(self):
        content = 'ComponentRegistrar::register(ComponentRegistrar::MODULE, "Vendor_Bar", __DIR__);'
        assert parse_registration(content) == "Vendor_Bar"

    def test_theme_registration_ignored(self):
        content = "ComponentRegistrar::register(ComponentRegistrar::THEME, 'frontend/Vendor/theme', __DIR__);"
        assert parse_registration(content) is None


class TestModuleRegistry:
    """Tests for ModuleRegistry."""

    def test_discovers_local_and_vendor_modules(self, installation):
        local = installation.add_module("Acme_Blog")
        vendored = installation.add_module("Vendor_Foo", vendor=True, package_dir="vendor/module-foo")
        registry = installation.registry()

        assert registry.all_names() == ["Acme_Blog", "Vendor_Foo"]
        assert registry.dir_for("Acme_Blog") == local
        assert registry.dir_for("Vendor_Foo") == vendored

    def test_descriptor_fallback(self, installation):
        """Test modules without registration.php are found through module.xml."""
        module_dir = installation.add_module("Acme_Legacy", registration=False)
        assert installation.registry().dir_for("Acme_Legacy") == module_dir

    def test_directory_without_metadata_ignored(self, installation):
        (installation.root / "app" / "code" / "Acme" / "Empty").mkdir(parents=True)
        installation.add_module("Acme_Blog")
        assert installation.registry().all_names() == ["Acme_Blog"]

    def test_not_registered(self, installation):
        installation.add_module("Acme_Blog")
        with pytest.raises(AuditError) as exc_info:
            installation.registry().dir_for("Acme_Missing")
        assert exc_info.value.kind == ErrorKind.NOT_REGISTERED
        assert exc_info.value.details["module"] == "Acme_Missing"
        assert "Acme_Missing" in str(exc_info.value)

    def test_overrides(self, installation):
        custom = installation.root / "modules" / "custom"
        custom.mkdir(parents=True)
        registry = ModuleRegistry(installation.root, overrides={"Custom_Module": "modules/custom"})
        assert registry.dir_for("Custom_Module") == custom
        assert "Custom_Module" in registry.all_names()

    def test_missing_roots(self, tmp_path):
        assert ModuleRegistry(tmp_path).all_names() == []

import builtins
import importlib
import re
from pathlib import Path

import pytest


def _has_imports(root: Path, package: str) -> list[str]:
    pattern = re.compile(rf"^\s*(from|import)\s+{package}(\.|\s|$)")
    offenders: list[str] = []
    for path in root.rglob("*.py"):
        try:
            content = path.read_text(encoding="utf-8")
        except OSError:
            continue
        for line in content.splitlines():
            if pattern.search(line):
                offenders.append(str(path))
                break
    return offenders


@pytest.mark.core
def test_core_has_no_google_imports() -> None:
    root = Path(__file__).resolve().parents[2] / "fleetpin_core"
    offenders = _has_imports(root, "google")
    assert not offenders, "Found google imports in Core: " + ", ".join(offenders)


@pytest.mark.core
def test_core_does_not_import_adapters() -> None:
    root = Path(__file__).resolve().parents[2] / "fleetpin_core"
    offenders = _has_imports(root, "fleetpin_gcp") + _has_imports(root, "local_adapter")
    assert not offenders, "Core imports an adapter: " + ", ".join(offenders)


@pytest.mark.core
def test_core_imports_without_gcp() -> None:
    real_import = builtins.__import__

    def guarded_import(name, globals=None, locals=None, fromlist=(), level=0):
        if name == "google" or name.startswith("google."):
            raise AssertionError(f"GCP import detected in Core: {name}")
        return real_import(name, globals, locals, fromlist, level)

    builtins.__import__ = guarded_import
    try:
        importlib.import_module("fleetpin_core.agent")
        importlib.import_module("fleetpin_core.stores")
        importlib.import_module("fleetpin_core.platform")
    finally:
        builtins.__import__ = real_import

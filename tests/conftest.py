"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages, and
provides ``load_module`` for tests that need functions with real source files.
"""

import importlib.util
import sys
import textwrap
from collections.abc import Callable, Iterator
from pathlib import Path
from types import ModuleType
from uuid import uuid4

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local covtrace package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of covtrace modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("covtrace"):
        del sys.modules[module_name]


ModuleLoader = Callable[[str], ModuleType]


@pytest.fixture
def load_module(tmp_path: Path) -> Iterator[ModuleLoader]:
    """Write source to a file under tmp_path and import it as a fresh module."""
    loaded: list[str] = []

    def _load(source: str) -> ModuleType:
        name = f"covtrace_sample_{uuid4().hex[:8]}"
        path = tmp_path / f"{name}.py"
        path.write_text(textwrap.dedent(source))
        spec = importlib.util.spec_from_file_location(name, path)
        assert spec is not None and spec.loader is not None
        module = importlib.util.module_from_spec(spec)
        sys.modules[name] = module
        loaded.append(name)
        spec.loader.exec_module(module)
        return module

    yield _load

    for name in loaded:
        sys.modules.pop(name, None)

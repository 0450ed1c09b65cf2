"""
Component module loading.

The host resolves application-supplied modules (resolvers, caches,
plugins) from paths relative to a component directory, then hands the
exported objects to the extension. Extensions never import by path
themselves.
"""

import hashlib
import importlib.util
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Union

from shared.errors import ModuleLoadError
from shared.logging import get_logger

logger = get_logger("shared.loaders")

_MISSING = object()


def _module_name(path: Path) -> str:
    """Stable, collision-free module name for a component file."""
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
    return f"_component_{path.stem}_{digest}"


def load_module(component_path: Union[str, Path], relative_path: str) -> ModuleType:
    """Import a Python module from a path relative to a component directory."""
    path = (Path(component_path) / relative_path).resolve()
    if not path.is_file():
        raise ModuleLoadError(str(path), "Module file not found")

    name = _module_name(path)
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise ModuleLoadError(str(path), "Not an importable Python module")

    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(name, None)
        raise ModuleLoadError(str(path), f"Import failed: {e}") from e

    logger.debug("Component module loaded", path=str(path), module=name)
    return module


def get_export(module: ModuleType, *names: str, default: Any = _MISSING) -> Any:
    """Return the first attribute of ``module`` found among ``names``."""
    for name in names:
        value = getattr(module, name, None)
        if value is not None:
            return value

    if default is not _MISSING:
        return default

    raise ModuleLoadError(
        getattr(module, "__file__", None) or module.__name__,
        f"Module exports none of: {', '.join(names)}",
    )

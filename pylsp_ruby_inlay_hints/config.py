"""Per-request view over the plugin's feature toggles."""
from __future__ import annotations
from typing import Any, Dict, Mapping, Optional

# Feature names understood by the hint collector
IMPLICIT_RESCUE = "implicitRescue"
IMPLICIT_HASH_VALUE = "implicitHashValue"

# Turns every feature on regardless of its own toggle
ENABLE_ALL = "enableAll"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "enabled": True,
    ENABLE_ALL: False,
    IMPLICIT_RESCUE: False,
    IMPLICIT_HASH_VALUE: False,
}


class RequestConfig:
    """Answers ``enabled(name)`` for one request.

    Built from the ``ruby_inlay_hints`` plugin settings. Missing keys read as
    disabled. The ``enableAll`` override is honoured here and nowhere else.
    """

    def __init__(self, configuration: Optional[Mapping[str, Any]] = None) -> None:
        self._configuration: Dict[str, Any] = dict(configuration or {})

    def enabled(self, name: str) -> bool:
        return bool(self._configuration.get(ENABLE_ALL) or self._configuration.get(name))

    def __repr__(self) -> str:
        return f"RequestConfig({self._configuration!r})"

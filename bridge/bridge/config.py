"""Runtime configuration for the engine and its HTTP transport.

Values come from ``BRIDGE_*`` environment variables, which the server
entrypoint first loads from a ``.env`` file in the working directory.
List-valued settings are comma separated::

    BRIDGE_LOCALE=fr_FR
    BRIDGE_VENDOR=Acme
    BRIDGE_GET_OPERATIONS=get.*,find.*,list.*
    BRIDGE_CLASS_MODULES=myapp.models
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

ENV_PREFIX = "BRIDGE_"


def _split(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True, slots=True)
class BridgeConfig:
    locale: str = "en_GB"
    vendor: str = "Vendor"
    get_operations: tuple[str, ...] = ("get.*",)
    put_operations: tuple[str, ...] = ("put.*",)
    delete_operations: tuple[str, ...] = ("delete.*",)
    stray_dot_grouping_languages: tuple[str, ...] = ("sv",)
    class_modules: tuple[str, ...] = ()
    host: str = "127.0.0.1"
    port: int = 8100
    log_level: str = "info"
    services: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "BridgeConfig":
        """Build a config from ``BRIDGE_*`` variables, defaulting the rest.

        ``BRIDGE_SERVICES`` maps paths to importable classes, as
        ``/widgets=gateway.services:WidgetService,/other=pkg.mod:Other``.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str) -> str | None:
            return env.get(ENV_PREFIX + name)

        services: dict[str, str] = {}
        for entry in _split(get("SERVICES") or ""):
            path, sep, target = entry.partition("=")
            if not sep or not target.strip():
                raise ValueError(f"BRIDGE_SERVICES entry must be path=module:Class, got {entry!r}")
            services[path.strip()] = target.strip()

        port = get("PORT")
        return cls(
            locale=get("LOCALE") or defaults.locale,
            vendor=get("VENDOR") or defaults.vendor,
            get_operations=_split(get("GET_OPERATIONS") or "") or defaults.get_operations,
            put_operations=_split(get("PUT_OPERATIONS") or "") or defaults.put_operations,
            delete_operations=_split(get("DELETE_OPERATIONS") or "") or defaults.delete_operations,
            stray_dot_grouping_languages=(
                _split(get("STRAY_DOT_LANGUAGES") or "") or defaults.stray_dot_grouping_languages
            ),
            class_modules=_split(get("CLASS_MODULES") or ""),
            host=get("HOST") or defaults.host,
            port=int(port) if port else defaults.port,
            log_level=(get("LOG_LEVEL") or defaults.log_level).lower(),
            services=services,
        )

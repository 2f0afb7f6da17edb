"""
Static routing table.

Holds the exact-path exceptions answered without invoking the function. Built once
at startup from RESERVED_PATHS and an optional YAML file, read-only afterwards.

Note:
    Lookups are a single dict access, so their cost does not depend on the number
    of reserved paths or on request volume.
"""

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

import yaml
from pydantic import ValidationError

from ..models.routing import StaticRoute

logger = logging.getLogger("gateway.routing_table")


class RoutingTable:
    def __init__(self, routes: Iterable[StaticRoute] = ()):
        table: Dict[str, StaticRoute] = {}
        for route in routes:
            if route.path in table:
                logger.warning(f"Duplicate static route {route.path}; keeping the last definition")
            table[route.path] = route
        self._routes: Mapping[str, StaticRoute] = MappingProxyType(table)

    @classmethod
    def build(cls, reserved_paths: Iterable[str], config_path: str = "") -> "RoutingTable":
        """
        Build the table from reserved paths (404) and an optional routing file.

        Routes from the file override reserved paths with the same path.
        """
        routes: List[StaticRoute] = [StaticRoute(path=path) for path in reserved_paths]
        if config_path:
            routes.extend(cls.load_routing_config(config_path))

        table = cls(routes)
        logger.info(f"Static routes: {', '.join(sorted(table.paths())) or '(none)'}")
        return table

    @staticmethod
    def load_routing_config(config_path: str) -> List[StaticRoute]:
        """
        Load static routes from a YAML file.

        A missing file is tolerated; an unparsable one is a startup error.
        """
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                cfg: Dict[str, Any] = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning(f"Routing config not found at {config_path}")
            return []
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing routing config {config_path}: {e}") from e
        if not isinstance(cfg, dict):
            raise ValueError(f"Routing config {config_path} must be a mapping")

        entries = cfg.get("static_routes") or []
        if not isinstance(entries, list):
            raise ValueError(f"'static_routes' in {config_path} must be a list")

        try:
            routes = [StaticRoute.model_validate(entry) for entry in entries]
        except ValidationError as e:
            raise ValueError(f"Invalid static route in {config_path}: {e}") from e

        logger.info(f"Loaded {len(routes)} static routes from {config_path}")
        return routes

    def lookup(self, path: str) -> Optional[StaticRoute]:
        """Return the static route for an exact path, or None."""
        return self._routes.get(path)

    def paths(self) -> List[str]:
        return list(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def __contains__(self, path: object) -> bool:
        return path in self._routes

"""Reconcile a Notion database's columns with what the diary app writes."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from diary_sync.aliases import REQUIRED_PROPERTIES
from diary_sync.notion import NotionClient

logger = logging.getLogger(__name__)


@dataclass
class SchemaReport:
    created: list[str] = field(default_factory=list)
    extended: list[str] = field(default_factory=list)

    @property
    def changed(self) -> list[str]:
        return self.created + self.extended

    @property
    def status(self) -> str:
        return "updated" if self.changed else "ok"


def _prop_type(definition: dict[str, Any]) -> str | None:
    if "type" in definition:
        return definition["type"]
    return next(iter(definition), None)


def _missing_options(existing: dict[str, Any], required: dict[str, Any]) -> list[dict[str, Any]]:
    have = {opt.get("name") for opt in existing.get("select", {}).get("options", [])}
    return [
        opt for opt in required["select"].get("options", []) if opt["name"] not in have
    ]


def plan_schema_changes(
    current: dict[str, Any],
    required: dict[str, dict[str, Any]] = REQUIRED_PROPERTIES,
) -> tuple[dict[str, Any], SchemaReport]:
    """Work out the PATCH body needed to bring ``current`` up to ``required``.

    Select columns that already exist only ever get options appended; the
    existing options keep their order, ids and colors.
    """
    patch: dict[str, Any] = {}
    report = SchemaReport()
    for name, definition in required.items():
        existing = current.get(name)
        if existing is None:
            patch[name] = copy.deepcopy(definition)
            report.created.append(name)
            continue

        wanted_type = _prop_type(definition)
        if existing.get("type") != wanted_type:
            logger.warning(
                "Column %r has type %r, expected %r; leaving it unchanged",
                name,
                existing.get("type"),
                wanted_type,
            )
            continue
        if wanted_type != "select":
            continue

        missing = _missing_options(existing, definition)
        if missing:
            options = list(existing.get("select", {}).get("options", []))
            patch[name] = {"select": {"options": options + copy.deepcopy(missing)}}
            report.extended.append(name)
    return patch, report


async def ensure_schema(client: NotionClient) -> SchemaReport:
    """Create missing columns and options on the client's database.

    Only issues a PATCH when something is missing, so repeated runs are no-ops.
    """
    database = await client.retrieve_database()
    patch, report = plan_schema_changes(database.get("properties", {}))
    if patch:
        logger.info("Patching database %s: %s", client.database_id, ", ".join(report.changed))
        await client.update_database_properties(patch)
    return report

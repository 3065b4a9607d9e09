"""
Workspace service - read-only access to the user's workspaces.
This layer contains no HTTP framework dependencies.
"""
import logging
from typing import Optional, List, Dict, Any

from streamline_mcp.exceptions import ValidationError, WorkspaceNotFoundError
from streamline_mcp.models.workspace_models import parse_rules, rules_summary
from streamline_mcp.models.task_models import drop_empty
from streamline_mcp.storage.interface import StoreInterface, WORKSPACES, eq, ilike
from streamline_mcp.utils.dates import format_date

logger = logging.getLogger(__name__)

WORKSPACE_LIMIT = 100


class WorkspaceService:
    """Service for workspace lookups."""

    def __init__(self, store: StoreInterface, user_id: str):
        self.store = store
        self.user_id = user_id

    def list_workspaces(self, include_rules: bool = True) -> List[Dict[str, Any]]:
        """
        List workspaces in the user's sort order.

        Args:
            include_rules: Add a one-line ``rules_summary`` to each workspace
        """
        workspaces = self.store.select(
            WORKSPACES,
            {"user_id": eq(self.user_id), "is_deleted": eq(False)},
            order="sort_index.asc",
            limit=WORKSPACE_LIMIT
        )
        results = []
        for w in workspaces:
            result = {"uuid": w["id"], "name": w.get("name"), "color": w.get("color_name")}
            if include_rules:
                result["rules_summary"] = rules_summary(parse_rules(w.get("rules_data")))
            results.append(result)
        return results

    def read_workspace(self, uuid: Optional[str] = None, name: Optional[str] = None) -> Dict[str, Any]:
        """
        Workspace details by UUID, or by case-insensitive name.

        Raises:
            ValidationError: If neither ``uuid`` nor ``name`` is given
            WorkspaceNotFoundError: If nothing matches
        """
        if uuid:
            filters = {"id": eq(uuid), "user_id": eq(self.user_id)}
        elif name:
            filters = {"user_id": eq(self.user_id), "name": ilike(name)}
        else:
            raise ValidationError("UUID or name required", field="uuid")

        rows = self.store.select(WORKSPACES, filters, limit=1)
        if not rows:
            if uuid:
                raise WorkspaceNotFoundError(uuid, message=f"Workspace not found with UUID: {uuid}")
            raise WorkspaceNotFoundError(name, message=f"Workspace not found with name: {name}")

        w = rows[0]
        rules = parse_rules(w.get("rules_data"))
        details = drop_empty({
            "uuid": w["id"],
            "name": w.get("name"),
            "color": w.get("color_name"),
            "created": format_date(w.get("created_at")),
            "updated": format_date(w.get("updated_at")),
        })
        details["rules"] = None
        if rules is not None:
            details["rules"] = {
                "include_groups": [
                    {"match_type": g.match_type, "tags": g.tag_names} for g in rules.include_groups
                ],
                "exclude_tags": rules.exclude_tags,
                "group_combinator": rules.group_combinator,
                "auto_tags": rules.auto_tag_names,
                "summary": rules_summary(rules),
            }
        return details

"""
Pydantic models for workspace rules.

Workspaces are saved tag filters created in the Streamline apps. Their
``rules_data`` column is only described here; filtering items by it is
left to the apps.
"""
import json
import logging
from typing import Optional, List, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)

NO_RULES = "No rules (all items)"


class RuleGroup(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    match_type: Literal["Any of", "All of"] = Field(..., alias="matchType")
    tag_names: List[str] = Field(default_factory=list, alias="tagNames")


class WorkspaceRules(BaseModel):
    """Include groups, excluded tags and the tags new items receive."""

    model_config = ConfigDict(populate_by_name=True)

    include_groups: List[RuleGroup] = Field(..., alias="includeGroups")
    exclude_tags: List[str] = Field(..., alias="excludeTags")
    group_combinator: Literal["AND", "OR"] = Field(..., alias="groupCombinator")
    auto_tag_names: List[str] = Field(default_factory=list, alias="autoTagNames")


def parse_rules(rules_data: Any) -> Optional[WorkspaceRules]:
    """Parse a workspace's ``rules_data``; None when absent or malformed."""
    if not rules_data:
        return None
    try:
        data = json.loads(rules_data) if isinstance(rules_data, (str, bytes)) else rules_data
        return WorkspaceRules.model_validate(data)
    except (ValueError, TypeError, PydanticValidationError) as e:
        logger.warning(f"Ignoring malformed workspace rules: {e}")
        return None


def rules_summary(rules: Optional[WorkspaceRules]) -> str:
    """e.g. "Include any of: work, urgent; Exclude: someday"."""
    if rules is None:
        return NO_RULES

    parts = []
    groups = [g for g in rules.include_groups if g.tag_names]
    if len(groups) == 1:
        group = groups[0]
        if len(group.tag_names) == 1:
            parts.append(f"Include: {group.tag_names[0]}")
        else:
            parts.append(f"Include {group.match_type.lower()}: {', '.join(group.tag_names)}")
    elif len(groups) > 1:
        parts.append(f"{len(groups)} rule groups ({rules.group_combinator})")

    if rules.exclude_tags:
        parts.append(f"Exclude: {', '.join(rules.exclude_tags)}")

    return "; ".join(parts) if parts else NO_RULES

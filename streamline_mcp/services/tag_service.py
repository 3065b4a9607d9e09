"""
Tag service - tag lookup and the task/tag and note/tag links.
This layer contains no HTTP framework dependencies.
"""
import logging
from typing import NamedTuple, Optional, List, Dict, Any, Iterable, Set

from streamline_mcp.exceptions import ValidationError, NotFoundError
from streamline_mcp.storage.interface import StoreInterface, TAGS, TASK_TAGS, NOTE_TAGS, eq, ilike, in_

logger = logging.getLogger(__name__)

TAG_LINK_LIMIT = 1000


class Junction(NamedTuple):
    collection: str
    key: str


TASK_LINKS = Junction(TASK_TAGS, "task_id")
NOTE_LINKS = Junction(NOTE_TAGS, "note_id")


class TagService:
    """Service for tag business logic."""

    def __init__(self, store: StoreInterface, user_id: str):
        self.store = store
        self.user_id = user_id

    def list_tags(self, include_hidden: bool = False) -> List[Dict[str, Any]]:
        """
        List the user's tags ordered by name.

        Args:
            include_hidden: Include tags hidden from task and note lists

        Returns:
            List of ``{name, is_favorite_for_tasks, is_favorite_for_notes}``
        """
        filters = {"user_id": eq(self.user_id)}
        if not include_hidden:
            filters["is_hidden_for_task_lists"] = eq(False)
            filters["is_hidden_for_note_lists"] = eq(False)

        tags = self.store.select(TAGS, filters, order="name.asc", limit=200)
        return [
            {
                "name": t.get("name"),
                "is_favorite_for_tasks": t.get("is_favorite_for_task_lists"),
                "is_favorite_for_notes": t.get("is_favorite_for_note_lists"),
            }
            for t in tags
        ]

    def find_tag(self, name: str) -> Optional[Dict[str, Any]]:
        """Exact name match first, then case-insensitive."""
        for expression in (eq(name), ilike(name)):
            tags = self.store.select(TAGS, {"user_id": eq(self.user_id), "name": expression}, limit=1)
            if tags:
                return tags[0]
        return None

    def create_tag(self, name: str) -> Dict[str, Any]:
        """
        Create a tag.

        Raises:
            ValidationError: If the name is blank or a tag with that name exists
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Tag name is required", field="name")
        if self.find_tag(name):
            raise ValidationError(f"Tag '{name}' already exists", field="name", value=name)
        return self._insert_tag(name)

    def _insert_tag(self, name: str) -> Dict[str, Any]:
        tag = self.store.insert(TAGS, {
            "user_id": self.user_id,
            "name": name,
            "is_favorite_for_task_lists": False,
            "is_favorite_for_note_lists": False,
            "is_hidden_for_task_lists": False,
            "is_hidden_for_note_lists": False,
        })
        logger.info(f"Created tag '{name}' ({tag['id']})")
        return tag

    def tag_ids_by_names(self, names: Iterable[str]) -> List[str]:
        """IDs of the existing tags among ``names``; unknown names are ignored."""
        ids = []
        for name in names:
            tag = self.find_tag(name)
            if tag:
                ids.append(tag["id"])
        return ids

    def get_or_create_tag_ids(self, names: Iterable[str]) -> List[str]:
        ids = []
        for name in names:
            tag = self.find_tag(name) or self._insert_tag(name)
            if tag["id"] not in ids:
                ids.append(tag["id"])
        return ids

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def _ids_with_tags(self, junction: Junction, tag_ids: List[str]) -> Set[str]:
        result: Optional[Set[str]] = None
        for tag_id in tag_ids:
            links = self.store.select(junction.collection, {"tag_id": eq(tag_id)}, limit=TAG_LINK_LIMIT)
            item_ids = {link[junction.key] for link in links}
            result = item_ids if result is None else result & item_ids
        return result or set()

    def _tag_ids_for(self, junction: Junction, item_id: str) -> List[str]:
        links = self.store.select(junction.collection, {junction.key: eq(item_id)}, limit=100)
        return [link["tag_id"] for link in links]

    def _tag_names_for(self, junction: Junction, item_id: str) -> List[str]:
        tag_ids = self._tag_ids_for(junction, item_id)
        if not tag_ids:
            return []
        tags = self.store.select(TAGS, {"id": in_(tag_ids)}, order="name.asc")
        return [t["name"] for t in tags]

    def _link(self, junction: Junction, item_id: str, tag_ids: Iterable[str]) -> int:
        existing = set(self._tag_ids_for(junction, item_id))
        added = 0
        for tag_id in tag_ids:
            if tag_id in existing:
                continue
            self.store.insert(junction.collection, {junction.key: item_id, "tag_id": tag_id})
            existing.add(tag_id)
            added += 1
        return added

    def _unlink(self, junction: Junction, item_id: str, tag_name: str) -> Dict[str, Any]:
        tag = self.find_tag(tag_name)
        if not tag:
            raise NotFoundError("Tag", tag_name, message=f"Tag '{tag_name}' not found")
        self.store.delete(junction.collection, {junction.key: eq(item_id), "tag_id": eq(tag["id"])})
        return tag

    def task_ids_with_tags(self, tag_ids: List[str]) -> Set[str]:
        """IDs of tasks linked to every one of ``tag_ids``."""
        return self._ids_with_tags(TASK_LINKS, tag_ids)

    def note_ids_with_tags(self, tag_ids: List[str]) -> Set[str]:
        """IDs of notes linked to every one of ``tag_ids``."""
        return self._ids_with_tags(NOTE_LINKS, tag_ids)

    def tag_ids_for_task(self, task_id: str) -> List[str]:
        return self._tag_ids_for(TASK_LINKS, task_id)

    def tag_names_for_task(self, task_id: str) -> List[str]:
        return self._tag_names_for(TASK_LINKS, task_id)

    def tag_names_for_note(self, note_id: str) -> List[str]:
        return self._tag_names_for(NOTE_LINKS, note_id)

    def link_tags(self, task_id: str, tag_ids: Iterable[str]) -> int:
        """Link tags to a task, skipping links that already exist. Returns the number added."""
        return self._link(TASK_LINKS, task_id, tag_ids)

    def link_note_tags(self, note_id: str, tag_ids: Iterable[str]) -> int:
        return self._link(NOTE_LINKS, note_id, tag_ids)

    def copy_tag_links(self, source_task_id: str, target_task_id: str) -> int:
        """Give ``target_task_id`` the same tags as ``source_task_id``."""
        return self.link_tags(target_task_id, self.tag_ids_for_task(source_task_id))

    def unlink_tag(self, task_id: str, tag_name: str) -> Dict[str, Any]:
        """
        Remove a tag from a task.

        Raises:
            NotFoundError: If no tag with that name exists
        """
        return self._unlink(TASK_LINKS, task_id, tag_name)

    def unlink_note_tag(self, note_id: str, tag_name: str) -> Dict[str, Any]:
        return self._unlink(NOTE_LINKS, note_id, tag_name)

    def unlink_all(self, task_id: str) -> None:
        self.store.delete(TASK_TAGS, {"task_id": eq(task_id)})

    def unlink_all_from_note(self, note_id: str) -> None:
        self.store.delete(NOTE_TAGS, {"note_id": eq(note_id)})

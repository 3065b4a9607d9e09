"""MCP function definitions exposed through tools/list."""

_UUID = {
    "type": "string",
    "description": "Task UUID (required)",
}

_NOTE_UUID = {
    "type": "string",
    "description": "Note UUID (required)",
}

_SERIES_UUID = {
    "type": "string",
    "description": "UUID of the recurring series template or of any of its occurrences",
}

RECURRENCE_SCHEMA = {
    "type": "object",
    "optional": True,
    "description": (
        "Makes the task recurring (due_date is then required). Fields: "
        "frequency ('daily'|'weekly'|'monthly'|'yearly', required); interval (default 1); "
        "weekdays (weekly only, 1=Sunday..7=Saturday); monthlyMode ('dayOfMonth'|'ordinalWeekday'); "
        "dayOfMonth (1-31); ordinalWeek (1-5, or -1 for last); ordinalWeekday (1-7); "
        "monthOfYear (1-12, yearly); anchor ('scheduledDueDate'|'completionDate'); "
        "endCondition ({type:'never'} | {type:'afterOccurrences', count} | {type:'onDate', date}). "
        "Day and month fields left out are taken from the due date."
    ),
    "properties": {
        "frequency": {"type": "string", "enum": ["daily", "weekly", "monthly", "yearly"]},
        "interval": {"type": "integer", "minimum": 1},
        "weekdays": {"type": "array", "items": {"type": "integer", "minimum": 1, "maximum": 7}},
        "monthlyMode": {"type": "string", "enum": ["dayOfMonth", "ordinalWeekday"]},
        "dayOfMonth": {"type": "integer", "minimum": 1, "maximum": 31},
        "ordinalWeek": {"type": "integer", "minimum": -1, "maximum": 5},
        "ordinalWeekday": {"type": "integer", "minimum": 1, "maximum": 7},
        "monthOfYear": {"type": "integer", "minimum": 1, "maximum": 12},
        "anchor": {"type": "string", "enum": ["scheduledDueDate", "completionDate"]},
        "endCondition": {"type": "object"},
    },
    "example": {"frequency": "weekly", "weekdays": [2, 4, 6]},
}

MCP_FUNCTIONS = [
    {
        "name": "search_tasks",
        "description": "Search tasks by name, tags, due date or status. Results are ordered by due date with undated tasks last. Recurring series templates are never returned, only their occurrences.",
        "parameters": {
            "query": {"type": "string", "optional": True, "description": "Text to search in task names and notes"},
            "tags": {"type": "array", "items": {"type": "string"}, "optional": True, "description": "Only tasks carrying all of these tags"},
            "include_completed": {"type": "boolean", "optional": True, "description": "Include completed and skipped tasks (default: false)"},
            "due_before": {"type": "string", "optional": True, "description": "Tasks due on or before (today, tomorrow, YYYY-MM-DD)"},
            "due_after": {"type": "string", "optional": True, "description": "Tasks due on or after (today, tomorrow, YYYY-MM-DD)"},
            "limit": {"type": "integer", "optional": True, "default": 20, "description": "Maximum results (default: 20)"},
        },
    },
    {
        "name": "read_task",
        "description": "Get full details of a task by UUID, including tags and recurrence.",
        "parameters": {
            "uuid": {"type": "string", "description": "The task UUID"},
        },
    },
    {
        "name": "create_task",
        "description": "Create a new task. Pass recurrence to create a recurring task: the first occurrence is due on due_date and the next one is created whenever the open one is completed, skipped or deleted.",
        "parameters": {
            "name": {"type": "string", "description": "Task name (required)"},
            "notes": {"type": "string", "optional": True, "description": "Additional notes"},
            "due_date": {"type": "string", "optional": True, "description": "Due date (today, tomorrow, YYYY-MM-DD)"},
            "tags": {"type": "array", "items": {"type": "string"}, "optional": True, "description": "Tags to assign; missing tags are created"},
            "is_urgent": {"type": "boolean", "optional": True, "description": "Mark as urgent"},
            "recurrence": RECURRENCE_SCHEMA,
        },
    },
    {
        "name": "update_task",
        "description": "Update a task's name, notes, due date or urgency. Omitted fields are unchanged.",
        "parameters": {
            "uuid": _UUID,
            "name": {"type": "string", "optional": True, "description": "New name"},
            "notes": {"type": "string", "optional": True, "description": "New notes"},
            "due_date": {"type": "string", "optional": True, "description": "New due date"},
            "is_urgent": {"type": "boolean", "optional": True, "description": "Urgency status"},
        },
    },
    {
        "name": "complete_task",
        "description": "Mark a task as completed or uncompleted. Completing the open occurrence of an active recurring series creates the next occurrence.",
        "parameters": {
            "uuid": _UUID,
            "completed": {"type": "boolean", "optional": True, "description": "Completion status (default: true)"},
        },
    },
    {
        "name": "delete_task",
        "description": "Move a task to trash or delete it permanently. Trashing the open occurrence of an active recurring series creates a replacement; permanent deletion does not. Series templates cannot be deleted, use end_recurrence instead.",
        "parameters": {
            "uuid": _UUID,
            "permanent": {"type": "boolean", "optional": True, "description": "Permanently delete (default: false)"},
        },
    },
    {
        "name": "search_notes",
        "description": "Search notes by title, content or tags, most recently edited first.",
        "parameters": {
            "query": {"type": "string", "optional": True, "description": "Text to search in titles and content"},
            "tags": {"type": "array", "items": {"type": "string"}, "optional": True, "description": "Only notes carrying all of these tags"},
            "include_archived": {"type": "boolean", "optional": True, "description": "Include archived notes"},
            "limit": {"type": "integer", "optional": True, "default": 20, "description": "Maximum results (default: 20)"},
        },
    },
    {
        "name": "read_note",
        "description": "Get the full content of a note by UUID.",
        "parameters": {
            "uuid": _NOTE_UUID,
        },
    },
    {
        "name": "create_note",
        "description": "Create a new note with markdown content. The first line becomes the title.",
        "parameters": {
            "content": {"type": "string", "optional": True, "description": "Note content in markdown"},
            "tags": {"type": "array", "items": {"type": "string"}, "optional": True, "description": "Tags to assign; missing tags are created"},
        },
    },
    {
        "name": "update_note",
        "description": "Update a note. Use append to add a paragraph to the existing content.",
        "parameters": {
            "uuid": _NOTE_UUID,
            "content": {"type": "string", "optional": True, "description": "Replace the entire content"},
            "append": {"type": "string", "optional": True, "description": "Append to the existing content"},
            "is_flagged": {"type": "boolean", "optional": True, "description": "Flag status"},
            "is_archived": {"type": "boolean", "optional": True, "description": "Archive status"},
        },
    },
    {
        "name": "delete_note",
        "description": "Move a note to trash or delete it permanently.",
        "parameters": {
            "uuid": _NOTE_UUID,
            "permanent": {"type": "boolean", "optional": True, "description": "Permanently delete (default: false)"},
        },
    },
    {
        "name": "list_tags",
        "description": "List all tags.",
        "parameters": {
            "include_hidden": {"type": "boolean", "optional": True, "description": "Include hidden tags"},
        },
    },
    {
        "name": "create_tag",
        "description": "Create a new tag. Fails if a tag with the same name exists.",
        "parameters": {
            "name": {"type": "string", "description": "Tag name (required)"},
        },
    },
    {
        "name": "tag_task",
        "description": "Add a tag to a task. The tag is created if it does not exist.",
        "parameters": {
            "uuid": _UUID,
            "tag": {"type": "string", "description": "Tag name (required)"},
        },
    },
    {
        "name": "untag_task",
        "description": "Remove a tag from a task.",
        "parameters": {
            "uuid": _UUID,
            "tag": {"type": "string", "description": "Tag name (required)"},
        },
    },
    {
        "name": "tag_note",
        "description": "Add a tag to a note. The tag is created if it does not exist.",
        "parameters": {
            "uuid": _NOTE_UUID,
            "tag": {"type": "string", "description": "Tag name (required)"},
        },
    },
    {
        "name": "untag_note",
        "description": "Remove a tag from a note.",
        "parameters": {
            "uuid": _NOTE_UUID,
            "tag": {"type": "string", "description": "Tag name (required)"},
        },
    },
    {
        "name": "list_workspaces",
        "description": "List all workspaces with a summary of their tag rules.",
        "parameters": {
            "include_rules": {"type": "boolean", "optional": True, "description": "Include rule summaries (default: true)"},
        },
    },
    {
        "name": "read_workspace",
        "description": "Get workspace details including its tag rules. Look it up by UUID or by name.",
        "parameters": {
            "uuid": {"type": "string", "optional": True, "description": "Workspace UUID"},
            "name": {"type": "string", "optional": True, "description": "Workspace name (case-insensitive), used when uuid is not given"},
        },
    },
    {
        "name": "skip_task",
        "description": "Skip the open occurrence of a recurring task. The occurrence is not counted as done and the next one is scheduled from its due date.",
        "parameters": {
            "uuid": {"type": "string", "description": "Occurrence UUID (required)"},
        },
    },
    {
        "name": "pause_recurrence",
        "description": "Pause an active recurring series. No occurrences are created while paused; the open occurrence stays.",
        "parameters": {
            "uuid": _SERIES_UUID,
        },
    },
    {
        "name": "resume_recurrence",
        "description": "Resume a paused recurring series. If no occurrence is open, the next one is created immediately.",
        "parameters": {
            "uuid": _SERIES_UUID,
        },
    },
    {
        "name": "end_recurrence",
        "description": "End a recurring series permanently. Existing occurrences are kept; no new ones are created.",
        "parameters": {
            "uuid": _SERIES_UUID,
        },
    },
    {
        "name": "read_recurrence",
        "description": "Show a recurring series: status, rule, summary, open occurrence and upcoming dates.",
        "parameters": {
            "uuid": _SERIES_UUID,
            "preview_count": {"type": "integer", "optional": True, "default": 5, "description": "Number of upcoming dates to list (default: 5)"},
        },
    },
]

"""The canonical engram observation type taxonomy, in display order."""

# Alphabetically sorted so it can be rendered directly as a select option list.
CANONICAL_TYPES: tuple[str, ...] = (
    "architecture",
    "bugfix",
    "config",
    "decision",
    "design",
    "discovery",
    "exploration",
    "pattern",
    "plan",
    "preference",
    "proposal",
    "report",
    "spec",
    "tasks",
)
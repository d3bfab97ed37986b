"""Pure analysis functions over Superstore rows."""

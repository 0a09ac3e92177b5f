"""Wire schemas shared between the kanban board engine and its remote store."""

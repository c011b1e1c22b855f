"""Canvas planner: persistence and versioning for graph documents."""

__version__ = "0.1.0"

"""floortrack: attendance event log and floor-time aggregation service."""

__version__ = "1.0.0"

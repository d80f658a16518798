"""
ScopeSync - Teamwork connections for estimation workflows

Links Teamwork accounts, keeps a local view of their projects, task lists
and tasks in sync, and writes estimations back.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]

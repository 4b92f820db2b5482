"""Student band mover: age-based worksheet reassignment for student rosters."""

__version__ = "0.1.0"

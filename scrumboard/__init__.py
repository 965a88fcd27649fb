# scrumboard/__init__.py
"""Classroom Scrum board backend with GitHub issue sync."""

__version__ = "0.1.0"

"""Templated issue store with GitLab synchronization"""

__version__ = "0.1.0"

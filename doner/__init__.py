"""Summarize completed issues from a GitHub project board column."""

__version__ = "0.1.0"

"""Audit artifacts written by the planner."""

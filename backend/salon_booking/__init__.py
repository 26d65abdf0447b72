"""Scheduling core for a grooming salon."""

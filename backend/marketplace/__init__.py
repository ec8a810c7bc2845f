"""Volunteer marketplace backend."""

"""Tests for canvas-planner."""

"""Tests for notifications app."""

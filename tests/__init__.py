"""Tests for live_session_core."""

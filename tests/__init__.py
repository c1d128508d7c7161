"""Tests for scaffold-orchestrator."""

"""Registers the harness fixtures for every test package."""

pytest_plugins = ["harness.fixtures"]

"""Pydantic models shared by the API, CLI and agent."""

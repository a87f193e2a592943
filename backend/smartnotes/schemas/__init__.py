"""Pydantic schemas and value objects shared by routes and services."""

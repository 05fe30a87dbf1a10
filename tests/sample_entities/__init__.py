"""Searchable entity models shared by the test suite."""

"""Test suite for You CLI."""

"""Utility helpers for zkputer_mcp."""

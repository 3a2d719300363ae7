"""CLI module for zkputer_mcp."""

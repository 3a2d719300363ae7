"""
Entry point for running zkputer_mcp as a module: python -m zkputer_mcp
"""

from zkputer_mcp.cli.commands import app

if __name__ == "__main__":
    app()

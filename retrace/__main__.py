# retrace/__main__.py
"""
Entry point for the retrace CLI.
"""
from retrace.cli import app

if __name__ == "__main__":
    app()

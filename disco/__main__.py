"""
Entry point for running disco as a module: python -m disco
"""

from disco.cli.commands import app

if __name__ == "__main__":
    app()

"""Main entry point when executing playgov as a package.

This allows running the package using python -m playgov.
"""

from playgov.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()

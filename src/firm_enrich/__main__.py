"""Allow ``python -m firm_enrich``."""

from firm_enrich import cli

if __name__ == "__main__":
    cli.app()

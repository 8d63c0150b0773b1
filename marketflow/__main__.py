"""Allow ``python -m marketflow``."""

from marketflow.cli.main import run

if __name__ == "__main__":
    run()

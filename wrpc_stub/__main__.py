"""Entry point for ``python -m wrpc_stub``."""

from wrpc_stub.cli import app

if __name__ == "__main__":
    app()

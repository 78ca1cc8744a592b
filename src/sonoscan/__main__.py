# src/sonoscan/__main__.py
from __future__ import annotations


def main() -> int:
    """
    Module entrypoint:
      - python -m sonoscan            -> CLI help
      - python -m sonoscan <command>  -> CLI command
    """
    from sonoscan.cli import main as cli_main

    # Let the CLI parse sys.argv itself.
    return int(cli_main())


if __name__ == "__main__":
    raise SystemExit(main())

"""Module entrypoint for `python -m coderunner`."""

try:
    from .cli import run
except ImportError:
    # Executed by path (runpy, frozen builds) outside package context.
    from coderunner.cli import run


if __name__ == "__main__":
    raise SystemExit(run())

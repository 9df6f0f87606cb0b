"""Scoped syntax checker run as a sandbox subprocess.

Usage: ``python syntax_check.py FILE [FILE ...]``

Parses each Python file with ``compile`` and each JSON file with
``json.loads`` without importing or executing anything, and prints one
diagnostic per broken file in the form::

    path:line:col: error E999 SyntaxError: message

Exit status is 0 when every file parses and 1 otherwise. Only the standard
library is used so the script runs under any interpreter without the
package being installed.
"""

import json
import sys

JSON_SUFFIXES = (".json",)


def check_file(path: str) -> str | None:
    """Return a diagnostic line for ``path`` or None if it parses."""
    try:
        with open(path, "rb") as handle:
            raw = handle.read()
    except OSError as exc:
        return f"{path}:0:0: error E902 {type(exc).__name__}: {exc.strerror or exc}"

    if path.endswith(JSON_SUFFIXES):
        try:
            json.loads(raw.decode("utf-8"))
        except UnicodeDecodeError as exc:
            return f"{path}:1:0: error E902 UnicodeDecodeError: {exc.reason}"
        except json.JSONDecodeError as exc:
            return f"{path}:{exc.lineno}:{exc.colno}: error E999 JSONDecodeError: {exc.msg}"
        return None

    try:
        compile(raw, path, "exec", dont_inherit=True)
    except SyntaxError as exc:
        line = exc.lineno or 0
        col = exc.offset or 0
        return f"{path}:{line}:{col}: error E999 {type(exc).__name__}: {exc.msg}"
    except ValueError as exc:
        # e.g. source containing null bytes
        return f"{path}:0:0: error E902 ValueError: {exc}"
    return None


def main(argv: list[str] | None = None) -> int:
    paths = sys.argv[1:] if argv is None else argv
    failed = False
    for path in paths:
        diagnostic = check_file(path)
        if diagnostic is not None:
            print(diagnostic)
            failed = True
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())

"""Write the ReviewHub OpenAPI schema, or verify a committed copy is current."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from reviewhub.main import create_app


def render_schema(indent: int = 2) -> str:
    schema = create_app().openapi()
    return json.dumps(schema, indent=indent, sort_keys=True) + "\n"


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate the ReviewHub OpenAPI schema")
    parser.add_argument("--output", default="openapi.json", help="Schema path (default: openapi.json)")
    parser.add_argument("--indent", type=int, default=2)
    parser.add_argument(
        "--check",
        action="store_true",
        help="Exit non-zero when the file at --output differs from the generated schema",
    )
    args = parser.parse_args()

    rendered = render_schema(args.indent)
    output_path = Path(args.output)
    if args.check:
        current = output_path.read_text(encoding="utf-8") if output_path.exists() else ""
        if current != rendered:
            print(f"{output_path} is out of date; rerun without --check", file=sys.stderr)
            sys.exit(1)
        print(f"{output_path} is up to date")
        return

    output_path.write_text(rendered, encoding="utf-8")
    print(f"OpenAPI schema written to {output_path}")


if __name__ == "__main__":
    main()

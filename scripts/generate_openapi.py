"""
Generate the OpenAPI specification of the billing API.

Usage:
    python scripts/generate_openapi.py                    # Print to stdout
    python scripts/generate_openapi.py --output api.json  # Save to file
    python scripts/generate_openapi.py --validate         # Summarize endpoints
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.server import create_app
from ledger_store.memory import InMemoryLedgerStore


REQUIRED_FIELDS = ("openapi", "info", "paths")


def generate_openapi_spec(output_path: str = None) -> dict:
    """Build the OpenAPI document from an app backed by an empty in-memory store."""
    app = create_app(store=InMemoryLedgerStore())
    spec = app.openapi()

    if output_path:
        Path(output_path).write_text(json.dumps(spec, indent=2))
        print(f"OpenAPI spec written to: {output_path}")
    else:
        print(json.dumps(spec, indent=2))

    return spec


def summarize(spec: dict) -> int:
    missing = [f for f in REQUIRED_FIELDS if f not in spec]
    if missing:
        print(f"ERROR: Missing required field(s): {', '.join(missing)}", file=sys.stderr)
        return 1

    paths = spec.get("paths", {})
    schemas = spec.get("components", {}).get("schemas", {})
    print(f"\nOpenAPI {spec['openapi']} - {spec['info']['title']}")
    for path, methods in sorted(paths.items()):
        print(f"  {', '.join(m.upper() for m in methods):<14} {path}")
    print(f"  Schemas: {len(schemas)}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Generate OpenAPI specification")
    parser.add_argument("--output", "-o", help="Output file path (default: stdout)")
    parser.add_argument("--validate", action="store_true", help="Summarize the document after generation")
    args = parser.parse_args()

    spec = generate_openapi_spec(args.output)
    if args.validate:
        sys.exit(summarize(spec))


if __name__ == "__main__":
    main()

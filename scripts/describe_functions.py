#!/usr/bin/env python3
"""
Function manifest generator.

Imports the Lambda function modules under `src/`, which register themselves on
the global function registry, and writes every declaration (schemas, security
posture and computed pipeline) for documentation and deployment tooling.
"""

import argparse
import importlib
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import yaml

SRC_DIR = Path(__file__).parent.parent / "src"


def discover_function_modules(src_dir: Path) -> List[str]:
    """Module names of every `<function>/lambda_function.py` under src."""
    return sorted(
        f"{path.parent.name}.lambda_function"
        for path in src_dir.glob("*/lambda_function.py")
    )


def build_manifest(modules: List[str]) -> Dict[str, Any]:
    """
    Import function modules and collect their declarations.

    Args:
        modules: Module names to import

    Returns:
        Manifest dictionary
    """
    sys.path.insert(0, str(SRC_DIR))

    from handler_kit import __version__
    from handler_kit.registry import get_function_registry

    for module in modules:
        importlib.import_module(module)

    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "generator": f"handler-kit/{__version__}",
        "functions": get_function_registry().describe(),
    }


def main():
    """Main function for the manifest generator script."""
    parser = argparse.ArgumentParser(
        description="Describe the registered Lambda functions"
    )
    parser.add_argument(
        "--format",
        choices=["json", "yaml"],
        default="yaml",
        help="Output format (default: yaml)"
    )
    parser.add_argument(
        "--out",
        help="Output file (default: stdout)"
    )
    parser.add_argument(
        "--module",
        action="append",
        help="Function module to import; repeatable (default: every src/*/lambda_function.py)"
    )

    args = parser.parse_args()

    manifest = build_manifest(args.module or discover_function_modules(SRC_DIR))

    if args.format == "json":
        output = json.dumps(manifest, indent=2, ensure_ascii=False)
    else:
        output = yaml.safe_dump(manifest, default_flow_style=False, allow_unicode=True, sort_keys=False)

    if args.out:
        Path(args.out).write_text(output, encoding="utf-8")
        print(f"Function manifest written to: {args.out}")
    else:
        print(output)


if __name__ == "__main__":
    main()

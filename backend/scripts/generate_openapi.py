"""Generate the OpenAPI schema of the coupon service.

Prints to stdout, or writes to the path given as the first argument.
"""

import json
import sys
from pathlib import Path
from typing import Any

from couponengine.main import app


def generate_openapi(output: Path | None = None) -> dict[str, Any]:
    schema = app.openapi()
    text = json.dumps(schema, indent=2)
    if output is None:
        print(text)
    else:
        output.write_text(text + "\n", encoding="utf-8")
    return schema


if __name__ == "__main__":
    generate_openapi(Path(sys.argv[1]) if len(sys.argv) > 1 else None)

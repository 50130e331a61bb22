"""Serve the portal API with uvicorn.

    python scripts/run_api.py

Host and port come from `API_HOST` / `API_PORT` (default 0.0.0.0:8000).
"""

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import uvicorn


def main() -> None:
    host = os.environ.get("API_HOST", "0.0.0.0")
    port = int(os.environ.get("API_PORT", "8000"))
    uvicorn.run("portal.main:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()

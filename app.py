#!/usr/bin/env python3
"""
Deployment entry point - runs the rustnews server.
This file exists at the root so hosting platforms can auto-detect and run it.

The FastAPI `app` is exposed at module level for uvicorn to import:
    uvicorn app:app --host 0.0.0.0 --port 9006
"""
import os
import sys

# Add the rustnews source to the path BEFORE any imports
_project_root = os.path.dirname(os.path.abspath(__file__))
_src_path = os.path.join(_project_root, "rustnews", "src")
if _src_path not in sys.path:
    sys.path.insert(0, _src_path)

from rustnews.server import create_app  # noqa: E402

app = create_app()

__all__ = ["app"]

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 9006))

    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=port)

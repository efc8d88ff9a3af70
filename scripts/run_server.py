#!/usr/bin/env python3
"""
Run the tide pool API (public counter, admin webhook and static site) under uvicorn.
"""

import argparse
import sys
from pathlib import Path

import uvicorn

# Add the parent directory to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from tidepool.core import config


def main():
    parser = argparse.ArgumentParser(description='Serve the Tide Pool API')
    parser.add_argument('--host', default='0.0.0.0',
                        help='Host to bind to (default: 0.0.0.0)')
    parser.add_argument('--port', type=int, default=3000,
                        help='Port to serve on (default: 3000)')
    parser.add_argument('--reload', action='store_true',
                        help='Reload on code changes (development only)')

    args = parser.parse_args()

    for issue in config.validate_config():
        print(f"⚠️  {issue}")

    print(f"🌊 Tide pool listening on http://{args.host}:{args.port}")
    if config.debug_enabled():
        print(f"Docs available at: http://{args.host}:{args.port}/docs")

    uvicorn.run(
        "tidepool.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()

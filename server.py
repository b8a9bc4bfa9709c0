#!/usr/bin/env python3
"""
SprintFlow Server Launcher
Runs the FastAPI app on localhost in LOCAL mode (single user, no role checks).
"""
import uvicorn
import os
import sys
from pathlib import Path

# Ensure src is in path
sys.path.insert(0, str(Path(__file__).parent / "src"))

if __name__ == "__main__":
    os.environ.setdefault("SPRINTFLOW_MODE", "local")

    print("=" * 60)
    print("SprintFlow Server Launcher")
    print("=" * 60)
    print(f"Mode: {os.environ['SPRINTFLOW_MODE'].upper()}")
    print(f"Port: 8000")
    print(f"Host: 127.0.0.1 (localhost only)")
    print("=" * 60)
    print()
    print("Starting server... (Press CTRL+C to stop)")
    print()

    try:
        uvicorn.run(
            "sprintflow.api.app:app",
            host="127.0.0.1",
            port=8000,
            reload=False,
            log_level="info"
        )
    except KeyboardInterrupt:
        print("\n\nServer stopped gracefully")
        sys.exit(0)
    except Exception as e:
        print(f"\n\nServer failed to start: {e}")
        sys.exit(1)

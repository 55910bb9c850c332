#!/usr/bin/env python3
"""
Startup script for the layerfix backend.

Starts the FastAPI server from the repository root.
"""

import os
import sys
import uvicorn
from pathlib import Path

def main():
    """Start the FastAPI backend server."""

    project_root = Path(__file__).parent.resolve()
    app_dir = project_root / "backend" / "app"

    print("🚀 Starting layerfix backend...")
    print(f"📁 Project root: {project_root}")

    if not (app_dir / "main.py").exists():
        print(f"❌ Error: main.py not found at {app_dir}")
        sys.exit(1)

    os.chdir(project_root)

    host = os.getenv("LAYERFIX_HOST", "0.0.0.0")
    port = int(os.getenv("LAYERFIX_PORT", "8000"))

    print(f"🌐 Server will be available at: http://localhost:{port}")
    print(f"📖 API documentation will be available at: http://localhost:{port}/docs")
    print("\n" + "="*60)

    try:
        uvicorn.run(
            "backend.app.main:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["backend/app"],
            log_level="info"
        )
    except KeyboardInterrupt:
        print("\n🛑 Server stopped by user")
    except Exception as e:
        print(f"\n❌ Server failed to start: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Praxis Legal Backend Startup Script

Checks dependencies and environment, then starts the API with uvicorn.
"""

import os
import sys
import argparse
import uvicorn

def check_requirements():
    """Check if all required dependencies are installed."""
    try:
        import fastapi
        import anthropic
        import sqlalchemy
        import httpx
        import reportlab
        import nh3
        print("✅ All required dependencies are installed")
        return True
    except ImportError as e:
        print(f"❌ Missing dependency: {e}")
        print("Please run: pip install -e .")
        return False

def check_environment():
    """Check if environment variables are set."""
    required_vars = [
        "ANTHROPIC_API_KEY",
        "DATABASE_URL",
        "SECRET_KEY"
    ]
    optional_vars = [
        "DLOCAL_API_KEY",
        "DLOCAL_SECRET_KEY"
    ]

    missing_vars = [var for var in required_vars if not os.getenv(var)]
    if missing_vars:
        print(f"❌ Missing environment variables: {', '.join(missing_vars)}")
        print("Please create a .env file or set these environment variables")
        return False

    missing_optional = [var for var in optional_vars if not os.getenv(var)]
    if missing_optional:
        print(f"⚠️  Billing disabled, missing: {', '.join(missing_optional)}")

    print("✅ Environment variables are configured")
    return True

def check_database():
    """Create tables and seed defaults."""
    from praxis.database import init_db

    init_db()
    print("✅ Database schema is up to date")

def main():
    """Main startup function."""
    parser = argparse.ArgumentParser(description="Praxis Legal Backend")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--workers", type=int, default=1, help="Number of worker processes")
    parser.add_argument("--log-level", default="info", help="Log level")
    parser.add_argument("--check-only", action="store_true", help="Only check requirements and exit")

    args = parser.parse_args()

    print("⚖️  Praxis Legal Backend Startup")
    print("=" * 40)

    if not check_requirements():
        sys.exit(1)

    if not check_environment():
        sys.exit(1)

    check_database()

    if args.check_only:
        print("✅ All checks passed! System is ready to start.")
        sys.exit(0)

    print("\n🚀 Starting Praxis Legal Backend...")
    print(f"📡 Server will be available at: http://{args.host}:{args.port}")
    print(f"📚 API Documentation: http://{args.host}:{args.port}/docs")
    print(f"❤️  Health Check: http://{args.host}:{args.port}/health")
    print("\n" + "=" * 40)

    # In-memory debouncers and copilot sessions live in one process
    if args.workers > 1:
        print("⚠️  Autosave timers and copilot sessions are per worker process")

    try:
        uvicorn.run(
            "praxis.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=args.workers if not args.reload else 1,
            log_level=args.log_level,
            access_log=True
        )
    except KeyboardInterrupt:
        print("\n👋 Shutting down Praxis Legal Backend...")
    except Exception as e:
        print(f"❌ Failed to start server: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()

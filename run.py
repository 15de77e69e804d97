#!/usr/bin/env python3
"""
Transaction Service Entry Point

Starts the FastAPI server with settings taken from TXN_* environment variables.
"""

import sys

import uvicorn

from transaction_service.config import get_config


if __name__ == "__main__":
    config = get_config()

    print("💳 Starting Transaction Service...")
    print(f"🗄️  Storage: {config.database_url}")
    print("💰 All balances use Decimal precision and never go negative")
    print(f"🌐 API available at: http://localhost:{config.api_port}")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        uvicorn.run(
            "transaction_service.api:app",
            host=config.api_host,
            port=config.api_port,
            reload=config.api_reload,
            log_level=config.log_level.lower()
        )
    except KeyboardInterrupt:
        print("\n👋 Shutting down Transaction Service...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)

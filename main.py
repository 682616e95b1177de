"""
Entry point for Nebula Poker
Starts the WebSocket room server with health endpoints.
"""

import argparse
import logging

from aiohttp import web

from nebula_poker.server import create_app
from nebula_poker.server_info import get_server_info, get_settings


def main(host: str, port: int, env_file: str = ".env"):
    settings = get_settings(env_file)
    settings.host = host or settings.host
    settings.port = port or settings.port
    info = get_server_info(env_file)

    print("🃏 Starting Nebula Poker server")
    print("=" * 50)
    print(f"{info['server_name']} v{info['version']} ({info['server_env']})")
    print(f"WebSocket endpoint: ws://{settings.host}:{settings.port}/ws")

    web.run_app(create_app(settings), host=settings.host, port=settings.port, print=None)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run the Nebula Poker room server")
    parser.add_argument("--host", default=None, help="Host to bind to (default: SERVER_HOST or 0.0.0.0)")
    parser.add_argument("--port", default=None, type=int, help="Port to bind to (default: SERVER_PORT or 3000)")
    parser.add_argument("--env-file", default=".env", help="Path to the .env file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.debug:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)

    try:
        main(args.host, args.port, args.env_file)
    except KeyboardInterrupt:
        print("\n👋 Server shutting down...")

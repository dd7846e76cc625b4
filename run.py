#!/usr/bin/env python3
"""
Entry point for the League Service.

Usage:
    python run.py

Environment Variables:
    FLASK_ENV: development, testing or production (default: development)
    PORT: Port to run on (default: 5000)
    DATABASE_URL, REDIS_URL, SECRET_KEY, ADMIN_WALLETS: see league/config.py
"""
import logging
import os


def run_league_service():
    """Run the league API service."""
    from league.app import create_app

    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    app = create_app()
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('FLASK_ENV', 'development') == 'development'

    print(f"Starting League Service on port {port}...")
    app.run(host='0.0.0.0', port=port, debug=debug)


if __name__ == '__main__':
    run_league_service()

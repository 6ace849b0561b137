#!/usr/bin/env python3
"""
Environment management script for the Arcade Aggregation Index
"""

import os
import sys
import subprocess
import shutil

ENV_FILES = {
    'dev': '.env.development',
    'development': '.env.development',
    'prod': '.env.production',
    'production': '.env.production'
}


def set_environment(env_type):
    """Select the environment and copy its env file to .env"""
    if env_type not in ENV_FILES:
        print(f"❌ Invalid environment: {env_type}")
        print("Available environments: dev/development, prod/production")
        return False

    source_file = ENV_FILES[env_type]
    if not os.path.exists(source_file):
        print(f"❌ Environment file not found: {source_file}")
        return False

    try:
        shutil.copy2(source_file, '.env')
        print(f"✅ Environment set to: {env_type}")
        print(f"📁 Copied {source_file} → .env")
        os.environ['ENVIRONMENT'] = 'development' if env_type in ['dev', 'development'] else 'production'
        return True
    except OSError as e:
        print(f"❌ Failed to copy environment file: {e}")
        return False


def run_migrations():
    """Upgrade the configured SQL store to the latest alembic revision"""
    from alembic import command
    from alembic.config import Config
    from arcade_index.config import STORAGE_PROVIDER

    if STORAGE_PROVIDER == 'memory':
        print("ℹ️  In-memory storage has no schema to migrate")
        return True

    print(f"🗄️  Applying migrations to {STORAGE_PROVIDER} storage...")
    try:
        command.upgrade(Config('alembic.ini'), 'head')
        print("✅ Migrations applied")
        return True
    except Exception as e:
        print(f"❌ Migration failed: {e}")
        return False


def start_server(env_type='dev'):
    """Start the server with the specified environment"""
    if not set_environment(env_type):
        return
    if not run_migrations():
        return

    print(f"\n🚀 Starting Arcade Aggregation Index in {env_type} mode...")

    if env_type in ['dev', 'development']:
        host = "localhost"
        reload = True
        print("🔄 Auto-reload enabled")
    else:
        host = "0.0.0.0"
        reload = False
        print("⚠️  Auto-reload disabled")
    port = os.getenv("PORT", "8000")
    print(f"🔧 Server: http://{host}:{port}")

    cmd = [sys.executable, "-m", "uvicorn", "arcade_index.main:app", "--host", host, "--port", port]
    if reload:
        cmd.append("--reload")

    print(f"📡 Running: {' '.join(cmd)}")
    print("Press Ctrl+C to stop the server\n")
    try:
        subprocess.run(cmd)
    except KeyboardInterrupt:
        print("\n🛑 Server stopped")


def show_status():
    """Show the active environment and storage settings"""
    print("📊 Arcade Aggregation Index Environment Status")
    print("=" * 46)

    if os.path.exists('.env'):
        settings = {}
        with open('.env', 'r') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#') and '=' in line:
                    key, value = line.split('=', 1)
                    settings[key.strip()] = value.strip()
        print(f"🔧 Environment: {settings.get('ENVIRONMENT', 'unknown').upper()}")
        print(f"💾 Storage: {settings.get('STORAGE_PROVIDER', 'memory')}")
        print(f"🔑 Write key configured: {'yes' if settings.get('API_SECRET_KEY') else 'no (writes refused)'}")
    else:
        print("❌ No environment configured (.env file missing)")

    print()
    print("Available commands:")
    print("  python env_manager.py dev          - Switch to development")
    print("  python env_manager.py prod         - Switch to production")
    print("  python env_manager.py migrate      - Apply database migrations")
    print("  python env_manager.py start        - Start server (dev mode)")
    print("  python env_manager.py start prod   - Start server (prod mode)")
    print("  python env_manager.py status       - Show this status")


def main():
    if len(sys.argv) < 2:
        show_status()
        return

    command = sys.argv[1].lower()

    if command in ['dev', 'development']:
        set_environment('development')
    elif command in ['prod', 'production']:
        set_environment('production')
    elif command == 'migrate':
        if not run_migrations():
            sys.exit(1)
    elif command == 'start':
        env_type = sys.argv[2] if len(sys.argv) > 2 else 'dev'
        start_server(env_type)
    elif command == 'status':
        show_status()
    else:
        print(f"❌ Unknown command: {command}")
        show_status()


if __name__ == '__main__':
    main()

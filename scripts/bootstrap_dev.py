"""
Dev bootstrap script — register an application and issue its API key.

Usage:
    python -m scripts.bootstrap_dev ["App name"] [owner@example.com]

This will:
  1. Create an application (default name "Dev App")
  2. Issue an API key for it (bcrypt-hashed in the DB)
  3. Print the raw key ONCE — it is never stored and cannot be recovered
"""

import asyncio
import sys

from analytics_api.core.database import async_session_factory, engine
from analytics_api.services.api_keys import register_application


async def main(name: str, owner_email: str) -> None:
    async with async_session_factory() as session:
        application, issued = await register_application(
            session, name=name, owner_email=owner_email,
        )

    print()
    print("=" * 60)
    print("  Dev Bootstrap Complete")
    print("=" * 60)
    print()
    print(f"  Application:    {application.name}")
    print(f"  Application ID: {application.id}")
    print(f"  Key ID:         {issued.key_id}")
    print(f"  Expires:        {issued.expires_at:%Y-%m-%d}")
    print()
    print(f"  API Key:        {issued.secret}")
    print()
    print("  ⚠  Copy this key now — it will NEVER be shown again.")
    print("=" * 60)
    print()

    await engine.dispose()


if __name__ == "__main__":
    app_name = sys.argv[1] if len(sys.argv) > 1 else "Dev App"
    owner = sys.argv[2] if len(sys.argv) > 2 else "dev@localhost"
    asyncio.run(main(app_name, owner))

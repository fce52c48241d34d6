#!/usr/bin/env python3
"""Helper script to check and create the .env file for the tracking service."""

import sys
from pathlib import Path

ENV_TEMPLATE = """# Supabase event journal (optional; without it events live in memory only)
# Get these from: https://supabase.com/dashboard -> Your Project -> Settings -> API
FT_SUPABASE_URL=https://your-project-id.supabase.co
FT_SUPABASE_KEY=your-service-role-key-here
FT_JOURNAL_TABLE=tracking_events

# API Configuration
FT_API_PREFIX=/api
FT_LOG_LEVEL=INFO
# FT_FRONTEND_ALLOWED_ORIGINS - JSON array or comma-separated

# Tracking behaviour
FT_RETENTION_DAYS=30
FT_STALE_AFTER_HOURS=12
FT_MAX_GAP_MINUTES=120
FT_SWEEP_INTERVAL_SECONDS=30
FT_RATING_THRESHOLDS=90,80,70,60
FT_TIMEZONE=UTC
"""


def _mask(value: str) -> str:
    return value[:20] + "..." + value[-10:] if len(value) > 20 else value


def main() -> int:
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Tracking Service Environment Checker")
    print("=" * 60)
    print()

    if not env_file.exists():
        print(f"❌ .env file NOT found at: {env_file}")
        env_file.write_text(ENV_TEMPLATE, encoding="utf-8")
        print(f"✅ Created template .env file at: {env_file}")
        print("⚠️  Edit .env and add your Supabase credentials to enable the event journal.")
        return 0

    print(f"✅ Found .env file at: {env_file}")
    print("-" * 60)
    for line in env_file.read_text(encoding="utf-8").splitlines():
        name, sep, value = line.partition("=")
        if sep and name.strip() == "FT_SUPABASE_KEY":
            print(f"{name}={_mask(value.strip())}")
        else:
            print(line)
    print("-" * 60)
    print()

    sys.path.insert(0, str(project_root / "src"))
    from pydantic import ValidationError

    try:
        from fieldtrack.config import Settings

        settings = Settings()
    except ValidationError as exc:
        print(f"❌ Invalid configuration: {exc}")
        return 1

    print(f"Retention: {settings.retention_days} days, stale after {settings.stale_after_hours}h")
    print(f"Rating thresholds: {', '.join(f'{value:g}' for value in settings.rating_thresholds)}")
    if settings.supabase_url and settings.supabase_key:
        print(f"✅ Event journal configured: {settings.supabase_url[:30]}... table '{settings.journal_table}'")
    else:
        print("⚠️  Event journal NOT configured; accepted events will not survive a restart")
        print("   Set FT_SUPABASE_URL and FT_SUPABASE_KEY (FT_ prefix, no spaces around '=')")
    return 0


if __name__ == "__main__":
    sys.exit(main())

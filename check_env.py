#!/usr/bin/env python3
"""Helper script to check and create the .env file for external route services."""

from pathlib import Path
import sys

TEMPLATE = """# API Configuration
ROUTE_OPT_API_PREFIX=/api
ROUTE_OPT_LOG_LEVEL=INFO
# ROUTE_OPT_FRONTEND_ALLOWED_ORIGINS - comma-separated or JSON array
# ROUTE_OPT_FRONTEND_ALLOWED_ORIGINS=http://localhost:5173,http://127.0.0.1:5173

# Geocoding (Nominatim compatible)
ROUTE_OPT_GEOCODER_BASE_URL=https://nominatim.openstreetmap.org

# OSRM Routing (Optional - leave empty to estimate travel from straight-line distance)
ROUTE_OPT_OSRM_BASE_URL=

# AI route optimization (OpenAI compatible chat completions)
ROUTE_OPT_AI_BASE_URL=https://your-ai-gateway.example/v1
ROUTE_OPT_AI_API_KEY=your-api-key-here
"""


def _mask(value: str) -> str:
    if len(value) > 12:
        return value[:6] + "..." + value[-4:]
    return value


def main():
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Route Optimizer Environment Checker")
    print("=" * 60)
    print()

    if not env_file.exists():
        print(f"❌ .env file NOT found at: {env_file}")
        env_file.write_text(TEMPLATE, encoding="utf-8")
        print(f"✅ Created template .env file at: {env_file}")
        print()
        print("⚠️  Please edit .env and add your geocoder and AI credentials!")
        return

    print(f"✅ Found .env file at: {env_file}")
    print()
    print("Testing config loading...")
    print()

    try:
        sys.path.insert(0, str(project_root / "src"))
        from route_optimizer.config import settings
    except Exception as e:
        print(f"❌ Error loading config: {e}")
        print()
        print("Make sure variables start with the ROUTE_OPT_ prefix")
        return

    checks = [
        ("Geocoder", settings.geocoder_base_url),
        ("OSRM", settings.osrm_base_url or "(not set, using straight-line estimates)"),
        ("AI gateway", settings.ai_base_url),
        ("AI key", _mask(settings.ai_api_key) if settings.ai_api_key else None),
    ]
    for label, value in checks:
        marker = "✅" if value else "❌"
        print(f"{marker} {label}: {value or 'not configured'}")

    print()
    if settings.ai_base_url and settings.ai_api_key:
        print("✅ AI optimization is configured")
    else:
        print("❌ AI optimization is NOT configured; optimize requests will fail with 503")


if __name__ == "__main__":
    main()

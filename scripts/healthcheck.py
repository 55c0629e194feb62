#!/usr/bin/env python3
import httpx
import sys
import os

def check_health():
    port = os.environ.get("PORT", "10000")
    url = f"http://localhost:{port}/health"

    try:
        response = httpx.get(url, timeout=5.0)
        if response.status_code != 200:
            print(f"Health check failed: {response.status_code}")
            return 1

        providers = response.json().get("providers", {})
        missing = [name for name, configured in providers.items() if not configured]
        if missing:
            print(f"Health check passed (unconfigured providers: {', '.join(missing)})")
        else:
            print("Health check passed")
        return 0
    except Exception as e:
        print(f"Health check error: {e}")
        return 1

if __name__ == "__main__":
    sys.exit(check_health())

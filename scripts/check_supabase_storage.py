"""
Diagnostic for the Supabase pieces the tutor backend relies on.

Checks:
1. SUPABASE_URL / SUPABASE_SERVICE_KEY are set
2. The project answers on its auth health endpoint
3. The PDF storage bucket exists
4. The user_pdfs table is reachable through the REST API

Usage:
    python scripts/check_supabase_storage.py
"""

import os
from typing import Dict

import requests
from dotenv import load_dotenv

TABLE = "user_pdfs"


def headers_for(key: str) -> Dict[str, str]:
    return {"apikey": key, "Authorization": f"Bearer {key}"}


def check_health(url: str, key: str) -> bool:
    print("\n🌐 Auth health endpoint...")
    try:
        response = requests.get(f"{url}/auth/v1/health", headers={"apikey": key}, timeout=10)
    except requests.exceptions.RequestException as e:
        print(f"❌ HTTP connection FAILED: {e}")
        return False

    if response.status_code == 200:
        print("✅ Project is reachable")
        return True
    print(f"⚠️  Health returned status {response.status_code}: {response.text[:200]}")
    return False


def check_bucket(url: str, key: str, bucket: str) -> bool:
    print(f"\n🪣 Storage bucket '{bucket}'...")
    try:
        response = requests.get(f"{url}/storage/v1/bucket/{bucket}", headers=headers_for(key), timeout=10)
    except requests.exceptions.RequestException as e:
        print(f"❌ Storage request FAILED: {e}")
        return False

    if response.status_code == 200:
        info = response.json()
        visibility = "public" if info.get("public") else "private"
        print(f"✅ Bucket exists ({visibility})")
        return True
    print(f"❌ Bucket check returned {response.status_code}: {response.text[:200]}")
    print(f"   Create a bucket named '{bucket}' under Storage in the Supabase dashboard")
    return False


def check_table(url: str, key: str) -> bool:
    print(f"\n📋 Table '{TABLE}'...")
    try:
        response = requests.get(
            f"{url}/rest/v1/{TABLE}",
            params={"select": "id", "limit": "1"},
            headers=headers_for(key),
            timeout=10,
        )
    except requests.exceptions.RequestException as e:
        print(f"❌ REST request FAILED: {e}")
        return False

    if response.status_code == 200:
        print("✅ Table is reachable")
        return True
    print(f"❌ Table check returned {response.status_code}: {response.text[:200]}")
    return False


def main() -> bool:
    print("=" * 70)
    print("🔍 SUPABASE STORAGE DIAGNOSTICS")
    print("=" * 70)

    load_dotenv()
    url = (os.getenv("SUPABASE_URL") or "").rstrip("/")
    key = os.getenv("SUPABASE_SERVICE_KEY")
    bucket = os.getenv("SUPABASE_PDF_BUCKET", "pdfs")

    print(f"\n📋 Loaded from .env:")
    print(f"   URL: {url or None}")
    print(f"   Key: {key[:20]}... (truncated)" if key else "   Key: None")
    print(f"   Bucket: {bucket}")

    if not url or not key:
        print("\n❌ CRITICAL: Missing SUPABASE_URL or SUPABASE_SERVICE_KEY in .env")
        return False

    results = {
        "Health": check_health(url, key),
    }
    if results["Health"]:
        results["Bucket"] = check_bucket(url, key, bucket)
        results["Table"] = check_table(url, key)

    print("\n" + "=" * 70)
    print("📊 DIAGNOSTIC SUMMARY")
    print("=" * 70)
    for name, ok in results.items():
        print(f"{name + ':':<10}{'✅ PASS' if ok else '❌ FAIL'}")

    return all(results.values()) and len(results) == 3


if __name__ == "__main__":
    raise SystemExit(0 if main() else 1)

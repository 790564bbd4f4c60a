#!/usr/bin/env python3
"""
Post-Deployment Health Check Script

Validates that the deployed settlement API is healthy: the health endpoint
answers with a connected database and the configuration endpoints respond.

Usage:
    python scripts/health_check.py --url <DEPLOYMENT_URL> --environment <staging|production>

Exit Codes:
    0: All health checks passed
    1: One or more health checks failed
"""

import argparse
import sys
import time
import requests
from typing import Dict, Tuple

# (check name, endpoint) probed for a plain 200 after the database check
ENDPOINT_CHECKS = [
    ("commission_variables", "/api/commission-variables"),
    ("multiplier_bands", "/api/multiplier-bands"),
]


def check_endpoint(url: str, endpoint: str, timeout: int = 10) -> Tuple[bool, str]:
    """
    Checks that an endpoint answers 200 OK.

    Returns:
        Tuple[bool, str]: (success, message)
    """
    full_url = f"{url.rstrip('/')}{endpoint}"
    try:
        response = requests.get(full_url, timeout=timeout)
    except requests.exceptions.Timeout:
        return False, f"✗ {endpoint} timed out after {timeout} seconds"
    except requests.exceptions.RequestException as e:
        return False, f"✗ {endpoint} request failed: {str(e)}"

    if response.status_code != 200:
        return False, f"✗ {endpoint} returned {response.status_code}"
    return True, f"✓ {endpoint} returned 200"


def check_database(url: str, timeout: int = 10) -> Tuple[bool, str]:
    """
    Checks /api/health and verifies the service reports a connected database.
    """
    full_url = f"{url.rstrip('/')}/api/health"
    try:
        response = requests.get(full_url, timeout=timeout)
        data = response.json()
    except requests.exceptions.RequestException as e:
        return False, f"✗ /api/health request failed: {str(e)}"
    except ValueError:
        return False, "✗ /api/health returned invalid JSON"

    db_status = data.get('database', {}).get('status', 'unknown')
    if response.status_code == 200 and db_status == 'connected':
        return True, "✓ /api/health returned 200, database connected"
    return False, f"✗ /api/health returned {response.status_code}, database status: {db_status}"


def run_health_checks(url: str) -> Dict[str, Tuple[bool, str]]:
    results = {"api_health": check_database(url, timeout=15)}
    for name, endpoint in ENDPOINT_CHECKS:
        results[name] = check_endpoint(url, endpoint, timeout=15)

    for name, (success, message) in results.items():
        print(f"  [{'PASS' if success else 'FAIL'}] {name}: {message}")
    return results


def main():
    parser = argparse.ArgumentParser(description="Run post-deployment health checks")
    parser.add_argument("--url", required=True, help="Deployment URL to check")
    parser.add_argument("--environment", required=True, choices=["staging", "production"],
                        help="Deployment environment")
    parser.add_argument("--retry", type=int, default=3,
                        help="Number of attempts before giving up (default: 3)")
    parser.add_argument("--retry-delay", type=int, default=10,
                        help="Delay in seconds between attempts (default: 10)")
    args = parser.parse_args()

    for attempt in range(1, args.retry + 1):
        if attempt > 1:
            time.sleep(args.retry_delay)
        print(f"\nHealth checks - {args.environment.upper()} - attempt {attempt}/{args.retry} ({args.url})")

        results = run_health_checks(args.url)
        passed = sum(1 for success, _ in results.values() if success)
        print(f"Total: {passed}/{len(results)} checks passed")

        if passed == len(results):
            sys.exit(0)

    print(f"✗ HEALTH CHECKS FAILED AFTER {args.retry} ATTEMPTS", file=sys.stderr)
    sys.exit(1)


if __name__ == "__main__":
    main()

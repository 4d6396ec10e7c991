#!/usr/bin/env python3
"""
Walk the referral -> hire -> payment flow against a running server
"""
import os
import sys
import time

import requests

BASE_URL = os.environ.get("BACKOFFICE_URL", "http://localhost:8000")


def check(resp, expected, what):
    if resp.status_code != expected:
        print(f"❌ {what} failed: {resp.status_code} {resp.text[:200]}")
        return False
    print(f"✓ {what}")
    return True


def test_referral_flow():
    stamp = time.strftime("%H%M%S")

    # 1. Company and a job with a fee
    resp = requests.post(f"{BASE_URL}/api/companies", json={"name": f"検証派遣{stamp}"})
    if not check(resp, 201, "Create company"):
        return False
    company = resp.json()

    resp = requests.post(
        f"{BASE_URL}/api/jobs",
        json={"company_id": company["id"], "title": "検証求人", "fee_amount": 150000, "fee_type": "fixed"},
    )
    if not check(resp, 201, "Create job"):
        return False
    job = resp.json()

    # 2. Job seeker with an application
    resp = requests.post(
        f"{BASE_URL}/api/job-seekers",
        json={"job_seeker": {"name": "検証 太郎", "phone": f"090{stamp}00"}},
    )
    if not check(resp, 201, "Register job seeker"):
        return False
    application = resp.json()["application"]

    # 3. Referral, then hire
    resp = requests.post(
        f"{BASE_URL}/api/referrals",
        json={"application_id": application["id"], "job_id": job["id"]},
    )
    if not check(resp, 201, "Create referral"):
        return False
    referral = resp.json()

    resp = requests.post(f"{BASE_URL}/api/referrals/{referral['id']}/status", json={"status": "hired"})
    if not check(resp, 200, "Mark referral hired"):
        return False
    sale = resp.json().get("sale")
    if not sale or sale["amount"] != 150000:
        print(f"❌ Expected sale was not created: {resp.json()}")
        return False
    print("✓ Expected sale created from the job fee")

    # 4. Paid sale moves the application to full_paid
    resp = requests.post(f"{BASE_URL}/api/sales/{sale['id']}/status", json={"status": "paid"})
    if not check(resp, 200, "Mark sale paid"):
        return False

    app_resp = requests.get(f"{BASE_URL}/api/applications/{application['id']}")
    if app_resp.json().get("progress_status") != "full_paid":
        print(f"❌ Application progress not updated: {app_resp.json()}")
        return False
    print("✓ Application progress is full_paid")

    # 5. Clean up (cascades to the seeker's application, referral and sale)
    requests.delete(f"{BASE_URL}/api/job-seekers/{application['job_seeker_id']}")
    requests.delete(f"{BASE_URL}/api/jobs/{job['id']}")
    requests.delete(f"{BASE_URL}/api/companies/{company['id']}")
    return True


if __name__ == "__main__":
    try:
        success = test_referral_flow()
        sys.exit(0 if success else 1)
    except Exception as e:
        print(f"❌ Test exception: {e}")
        sys.exit(1)

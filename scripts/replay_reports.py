# Folder: qport-core/scripts/replay_reports.py
# Sends sample reports to a running pipeline API, then replays them.
# The replays should all come back from the content cache - watch
# cache_hit_rate climb in the printed health.
#
# Run with: python scripts/replay_reports.py [--rounds 3]

import argparse
import time
import requests

BASE_URL = "http://127.0.0.1:5000"

SAMPLE_REPORTS = [
    "Major structure fire at 3rd and Market St. Multiple units in transit.",
    "Public transit vehicle collision near Van Ness. Traffic blocked.",
    "Water main break in Mission District. Street damage reported.",
    "Elderly man collapsed outside Ferry Building, not breathing.",
    "Armed robbery in progress at corner store on 24th and Folsom.",
]


def submit(base_url: str, text: str):
    start = time.time()
    try:
        resp = requests.post(f"{base_url}/incidents", json={"text": text}, timeout=120)
    except requests.RequestException as e:
        print(f"  ✗ {text[:40]}... ({e})")
        return
    elapsed_ms = (time.time() - start) * 1000
    body = resp.json()
    print(
        f"  {resp.status_code} {body.get('id', '-'):<12} "
        f"{body.get('status', body.get('error', '')):<8} "
        f"{elapsed_ms:7.0f}ms  {text[:40]}..."
    )


def main():
    parser = argparse.ArgumentParser(description="Replay sample reports against the pipeline API")
    parser.add_argument("--base_url", default=BASE_URL)
    parser.add_argument("--rounds", type=int, default=2)
    args = parser.parse_args()

    for round_no in range(1, args.rounds + 1):
        print(f"\n{'─'*50}\nRound {round_no}")
        for text in SAMPLE_REPORTS:
            submit(args.base_url, text)

    health = requests.get(f"{args.base_url}/health", timeout=10).json()
    stats = requests.get(f"{args.base_url}/stats", timeout=10).json()
    print(f"\n{'─'*50}")
    print(f"API status:      {health['api_status']}")
    print(f"Cache hit rate:  {health['cache_hit_rate']}%")
    print(f"Tests passing:   {health['active_tests_passing']}%")
    print(f"Open incidents:  {stats['total']} ({stats['critical']} critical)")


if __name__ == "__main__":
    main()

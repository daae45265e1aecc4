# === poll_status.py ===
# Watch a running bridge until the poller picks up a newer soil reading.
import requests
import time
import sys

base = sys.argv[1] if len(sys.argv) > 1 else "http://127.0.0.1:5000"
url = f"{base.rstrip('/')}/api/status"
start_time = time.time()
initial_status = None

try:
    initial_status = requests.get(url, timeout=10).json()
except Exception as e:
    print(f"Error fetching initial status from {url}: {e}")
    sys.exit(1)

print(f"Polling {url} ...")
print(f"Initial newest reading: {initial_status.get('newestCapturedAt')}")

while True:
    try:
        time.sleep(5)
        status = requests.get(url, timeout=10).json()
        current = status.get('newestCapturedAt')
        elapsed = time.time() - start_time

        print(f"[{int(elapsed)}s] newest={current} last_outcome={status.get('lastOutcome')} cycles={status.get('cycles')}")

        if current is not None and current != initial_status.get('newestCapturedAt'):
            print("\n✅ Success! Store was updated.")
            print(f"Time until a newer reading arrived: {int(elapsed)} seconds.")
            break

        if elapsed > 180:  # 3-minute timeout
            print("\n❌ Timed out waiting for a newer reading.")
            break
    except KeyboardInterrupt:
        print("\nPolling stopped.")
        break
    except Exception as e:
        print(f"Error during polling: {e}")
        time.sleep(5)

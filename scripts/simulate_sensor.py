"""
Simple simulator: post a few soil-moisture readings to the API, the way the
ESP gateway does (mixed timestamp encodings, irrigation bursts).
Run:
    python scripts/simulate_sensor.py
"""
import os
import time
import random
import requests

API = os.getenv("DASHBOARD_API_URL", "http://localhost:3000")

def main():
    r = requests.get(f"{API}/reading/test")
    print("API:", r.json())

    volume_total = 0.0
    for i in range(5):
        now = time.time()
        humidity = round(random.uniform(20, 80), 2)
        body = {
            "humidity": humidity,
            # alternate between epoch seconds, epoch ms and ISO strings
            "timestamp": [int(now), int(now * 1000), time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(now))][i % 3],
            "device_ts_ms": int(now * 1000),
            "esp_ip": "192.168.0.42",
            "esp_rssi": random.randint(-80, -40),
        }
        if humidity < 35:
            pulses = random.randint(100, 400)
            volume = round(pulses / 450, 3)
            volume_total += volume
            body.update({
                "regando": 1,
                "rega_pulsos": pulses,
                "rega_volume_l": volume,
                "volume_total_l": round(volume_total, 3),
                "rega_duracao_s": random.randint(5, 30),
            })
        rr = requests.post(f"{API}/reading", json=body)
        print("reading", i, rr.status_code, rr.text)
        time.sleep(1)

if __name__ == "__main__":
    main()

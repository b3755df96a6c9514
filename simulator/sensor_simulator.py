import argparse
import json
import random
import socket
import time


HOST = "127.0.0.1"   # Monitor address (server)
PORT = 4210          # Monitor datagram port
DEVICE_ID = "ESP32_LIVINGROOM"

SENSORS = {
    "pm25": {"base": 14.0, "noise": 3.0},
    "co2": {"base": 480.0, "noise": 25.0},
    "voc": {"base": 0.8, "noise": 0.2},
    "temperature": {"base": 23.5, "noise": 0.4},
    "humidity": {"base": 48.0, "noise": 2.0},
}


def generate_value(sensor) -> float:
    drift = 0.5 * random.uniform(-1, 1)
    return max(0.0, sensor["base"] + drift + random.gauss(0, sensor["noise"]))


def maybe_spike(name: str, value: float) -> float:
    # ~3% chance of a bad-air episode
    if name in ("pm25", "co2", "voc") and random.random() < 0.03:
        return value * 3
    return value


def json_message() -> bytes:
    msg = {name: round(maybe_spike(name, generate_value(s)), 2) for name, s in SENSORS.items()}
    msg["deviceId"] = DEVICE_ID
    return json.dumps(msg).encode("utf-8")


def text_message() -> bytes:
    # Same layout as the board's serial dump; no PM2.5 and the VOC sensor shows up as a raw ADC count
    adc = random.randint(10, 40)
    co2 = round(generate_value(SENSORS["co2"]))
    temp = generate_value(SENSORS["temperature"])
    hum = generate_value(SENSORS["humidity"])
    return f"adc reading: {adc}, co2: (ppm) {co2}, temp: {temp:.2f}, humidity: {hum:.2f}".encode("utf-8")


def run_client(host: str, port: int, interval: float, fmt: str):
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.settimeout(2.0)
        print(f"[SIM] Sending {fmt} readings to {host}:{port} every {interval}s")
        n = 0
        while True:
            try:
                use_text = fmt == "text" or (fmt == "mixed" and n % 2 == 1)
                payload = text_message() if use_text else json_message()
                sock.sendto(payload, (host, port))
                n += 1
                try:
                    ack, _ = sock.recvfrom(1024)
                    print(f"[SIM] #{n} ack: {ack.decode('utf-8', errors='replace')}")
                except socket.timeout:
                    print(f"[SIM] #{n} sent, no ack")
                time.sleep(interval)
            except OSError as e:
                print(f"[SIM] Send failed: {e}. Retrying in 1s...")
                time.sleep(1.0)
            except KeyboardInterrupt:
                print("\n[SIM] Stopped by user (Ctrl+C).")
                return


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Home sensor board simulator (UDP)")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--interval", type=float, default=5.0)
    parser.add_argument("--format", dest="fmt", choices=("json", "text", "mixed"), default="mixed")
    args = parser.parse_args()
    run_client(args.host, args.port, args.interval, args.fmt)

from __future__ import annotations

import argparse
import json
import time
from dataclasses import dataclass
from pathlib import Path
from urllib import request

PACKET_FIELDS = (
    "acc_x",
    "acc_y",
    "acc_z",
    "gyro_x",
    "gyro_y",
    "gyro_z",
    "latitude",
    "longitude",
)


@dataclass
class ReplayContext:
    """Runtime context for packet replay requests."""

    api_base: str
    vehicle_id: str


def post_json(url: str, payload: dict) -> dict:
    data = json.dumps(payload).encode("utf-8")
    req = request.Request(
        url=url,
        data=data,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    with request.urlopen(req, timeout=10) as resp:
        return json.loads(resp.read().decode("utf-8"))


def load_packets(path: Path) -> list[dict]:
    packets = []
    for line_no, line in enumerate(path.read_text(encoding="utf-8").splitlines(), 1):
        if not line.strip():
            continue
        packet = json.loads(line)
        missing = [name for name in PACKET_FIELDS if name not in packet]
        if missing:
            raise SystemExit(f"line {line_no}: missing fields {', '.join(missing)}")
        packets.append({name: packet[name] for name in PACKET_FIELDS})
    return packets


def replay_packet(context: ReplayContext, index: int, packet: dict) -> None:
    response = post_json(
        f"{context.api_base}/v1/vehicles/{context.vehicle_id}/readings", packet
    )
    print(
        f"[PACKET {index}] acc_z={packet['acc_z']} "
        f"-> danger={response['danger_percentage']} "
        f"accident_id={response['accident_id']}"
    )


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--packets",
        required=True,
        help="Path to JSON-lines file with raw sensor packets",
    )
    parser.add_argument("--vehicle-id", default="demo-vehicle")
    parser.add_argument("--vehicle-type", choices=["scooter", "car"], default=None)
    parser.add_argument("--api-base", default="http://127.0.0.1:8000")
    parser.add_argument("--rate", type=float, default=5.0, help="Packets per second")
    args = parser.parse_args()

    packets_path = Path(args.packets)
    if not packets_path.exists():
        raise SystemExit(f"packets file not found: {packets_path}")

    packets = load_packets(packets_path)
    if not packets:
        raise SystemExit("no packets found")

    context = ReplayContext(api_base=args.api_base, vehicle_id=args.vehicle_id)
    if args.vehicle_type:
        req = request.Request(
            url=f"{context.api_base}/v1/vehicles/{context.vehicle_id}/vehicle-type",
            data=json.dumps({"vehicle_type": args.vehicle_type}).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="PUT",
        )
        with request.urlopen(req, timeout=10):
            pass
    print(f"[INFO] vehicle_id={context.vehicle_id}, packets={len(packets)}")

    dt = 1.0 / args.rate if args.rate > 0 else 0.2

    for idx, packet in enumerate(packets):
        replay_packet(context=context, index=idx, packet=packet)
        time.sleep(dt)

    print(f"[DONE] vehicle_id={context.vehicle_id}")
    print(
        "Check accidents: "
        f"{context.api_base}/v1/accidents?vehicle_id={context.vehicle_id}"
    )


if __name__ == "__main__":
    main()

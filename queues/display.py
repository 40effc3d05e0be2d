"""
候診區 Arduino 七段顯示器。

輪詢 /queues/api/current_number/，號碼有變才送 "current,next\n" 給序列埠；
0 代表沒有號碼。
"""
from __future__ import annotations

import logging
import time

import requests
import serial
from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_BOARD = {
    "API_URL": "http://127.0.0.1:8000/queues/api/current_number/",
    "SERIAL_PORT": "COM3",
    "BAUDRATE": 9600,
    "POLL_INTERVAL": 3.0,
    "TIMEOUT": 3.0,
}


def board_settings(**overrides):
    conf = dict(DEFAULT_DISPLAY_BOARD)
    conf.update(getattr(settings, "CLINICQUEUE_DISPLAY_BOARD", {}) or {})
    conf.update({k: v for k, v in overrides.items() if v is not None})
    return conf


def format_frame(current, nxt) -> bytes:
    return f"{current or 0},{nxt or 0}\n".encode("ascii")


class DisplayBoardFeeder:
    def __init__(self, doctor_id, api_url, port, session=None, timeout=3.0):
        self.doctor_id = doctor_id
        self.api_url = api_url
        self.port = port
        self.session = session or requests.Session()
        self.timeout = timeout
        self.last_sent = None

    def fetch_numbers(self):
        """呼叫 API 拿 current / next 號碼；連不上回 (None, None)，下一輪再試"""
        try:
            resp = self.session.get(
                self.api_url,
                params={"doctor_id": self.doctor_id},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("display board: fetch failed: %s", exc)
            return None, None

        cur = data.get("current") or {}
        nxt = data.get("next") or {}
        return cur.get("number"), nxt.get("number")

    def push(self, current, nxt):
        """跟上一次一樣就不送；回傳這次有沒有送出去"""
        frame = format_frame(current, nxt)
        if frame == self.last_sent:
            return False
        self.port.write(frame)
        self.port.flush()
        self.last_sent = frame
        logger.info("display board: sent %s", frame.decode("ascii").strip())
        return True

    def tick(self):
        current, nxt = self.fetch_numbers()
        if current is None and nxt is None and self.last_sent is not None:
            # API 暫時連不上：保留看板上的號碼
            return False
        return self.push(current, nxt)

    def run(self, interval, max_ticks=None):
        ticks = 0
        while max_ticks is None or ticks < max_ticks:
            self.tick()
            ticks += 1
            if max_ticks is None or ticks < max_ticks:
                time.sleep(interval)


def open_port(port_name, baudrate):
    port = serial.Serial(port_name, baudrate, timeout=1)
    time.sleep(2)  # 等 Arduino reset 完
    return port

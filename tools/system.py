#!/usr/bin/env python3
"""System settings and status: volume, brightness, battery, wifi, disk, sleep."""
from __future__ import annotations

import re
import sys
from pathlib import Path

import psutil

from tools.base import Tool, ToolResult, split_action
from utils.runner import have, run_cmd

BACKLIGHT_DIR = Path("/sys/class/backlight")


def _level(raw: str) -> float:
    value = float(raw)
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"level must be between 0.0 and 1.0, got {raw}")
    return value


def _fail(res: dict, fallback: str) -> ToolResult:
    return ToolResult.fail(res["stderr"].strip() or fallback)


class SystemTool(Tool):
    name = "system"
    description = "System settings and status"
    commands = (
        "get_volume", "set_volume", "get_brightness", "set_brightness",
        "battery", "wifi", "disk_space", "sleep",
    )

    def execute(self, action: str) -> ToolResult:
        parts = split_action(action, 1)
        command = parts[0].strip().lower()
        arg = parts[1].strip() if len(parts) > 1 else ""
        handler = getattr(self, f"_{command}", None)
        if command not in self.commands or handler is None:
            return self.unknown(command)
        if command.startswith("set_"):
            try:
                return handler(_level(arg))
            except ValueError as e:
                return ToolResult.fail(f"{command} requires a level from 0.0 to 1.0 ({e})")
        return handler()

    # ---- volume ---------------------------------------------------------
    def _get_volume(self) -> ToolResult:
        if sys.platform == "darwin":
            res = run_cmd(["osascript", "-e", "output volume of (get volume settings)"])
            if res["rc"] != 0:
                return _fail(res, "Could not read volume")
            return ToolResult.ok(f"Volume: {res['stdout'].strip()}%")
        if have("pactl"):
            res = run_cmd(["pactl", "get-sink-volume", "@DEFAULT_SINK@"])
        elif have("amixer"):
            res = run_cmd(["amixer", "-D", "pulse", "sget", "Master"])
        else:
            return ToolResult.fail("Volume control not available (missing pactl/amixer)")
        m = re.search(r"(\d+)%", res["stdout"])
        if res["rc"] != 0 or not m:
            return _fail(res, "Could not read volume")
        return ToolResult.ok(f"Volume: {m.group(1)}%")

    def _set_volume(self, level: float) -> ToolResult:
        percent = int(round(level * 100))
        if sys.platform == "darwin":
            res = run_cmd(["osascript", "-e", f"set volume output volume {percent}"])
        elif have("pactl"):
            res = run_cmd(["pactl", "set-sink-volume", "@DEFAULT_SINK@", f"{percent}%"])
        elif have("amixer"):
            res = run_cmd(["amixer", "-D", "pulse", "sset", "Master", f"{percent}%"])
        else:
            return ToolResult.fail("Volume control not available (missing pactl/amixer)")
        if res["rc"] != 0:
            return _fail(res, "Could not set volume")
        return ToolResult.ok(f"Volume set to {percent}%")

    # ---- brightness -----------------------------------------------------
    def _get_brightness(self) -> ToolResult:
        if sys.platform == "darwin":
            if not have("brightness"):
                return ToolResult.fail("Brightness control needs the 'brightness' CLI (brew install brightness)")
            res = run_cmd(["brightness", "-l"])
            m = re.search(r"brightness ([0-9.]+)", res["stdout"])
            if res["rc"] != 0 or not m:
                return _fail(res, "Could not read brightness")
            return ToolResult.ok(f"Brightness: {round(float(m.group(1)) * 100)}%")
        if have("brightnessctl"):
            res = run_cmd(["brightnessctl", "-m"])
            m = re.search(r"(\d+)%", res["stdout"])
            if res["rc"] == 0 and m:
                return ToolResult.ok(f"Brightness: {m.group(1)}%")
        for dev in sorted(BACKLIGHT_DIR.glob("*")):
            try:
                cur = int((dev / "brightness").read_text().strip())
                maxv = int((dev / "max_brightness").read_text().strip())
            except (OSError, ValueError):
                continue
            return ToolResult.ok(f"Brightness: {round(cur * 100 / maxv)}%")
        return ToolResult.fail("Brightness control not available")

    def _set_brightness(self, level: float) -> ToolResult:
        percent = max(1, int(round(level * 100)))
        if sys.platform == "darwin":
            if not have("brightness"):
                return ToolResult.fail("Brightness control needs the 'brightness' CLI (brew install brightness)")
            res = run_cmd(["brightness", f"{level:.2f}"])
        elif have("brightnessctl"):
            res = run_cmd(["brightnessctl", "set", f"{percent}%"])
        else:
            return ToolResult.fail("Brightness control not available (missing brightnessctl)")
        if res["rc"] != 0:
            return _fail(res, "Could not set brightness")
        return ToolResult.ok(f"Brightness set to {percent}%")

    # ---- status ---------------------------------------------------------
    def _battery(self) -> ToolResult:
        battery = psutil.sensors_battery()
        if battery is None:
            return ToolResult.fail("No battery found")
        state = "charging" if battery.power_plugged else "discharging"
        line = f"Battery: {battery.percent:.0f}% ({state})"
        if not battery.power_plugged and battery.secsleft not in (
            psutil.POWER_TIME_UNLIMITED, psutil.POWER_TIME_UNKNOWN
        ):
            hours, rem = divmod(int(battery.secsleft), 3600)
            line += f", {hours}h{rem // 60:02d}m remaining"
        return ToolResult.ok(line)

    def _wifi(self) -> ToolResult:
        if sys.platform == "darwin":
            res = run_cmd(["networksetup", "-getairportnetwork", "en0"])
            if res["rc"] != 0:
                return _fail(res, "Could not read Wi-Fi status")
            return ToolResult.ok(res["stdout"].strip())
        if not have("nmcli"):
            return ToolResult.fail("Wi-Fi status not available (missing nmcli)")
        res = run_cmd(["nmcli", "-t", "-f", "ACTIVE,SSID,SIGNAL", "dev", "wifi"])
        if res["rc"] != 0:
            return _fail(res, "Could not read Wi-Fi status")
        for ln in res["stdout"].splitlines():
            fields = ln.split(":")
            if len(fields) >= 3 and fields[0] == "yes":
                return ToolResult.ok(f"Connected to {fields[1]} (signal {fields[2]}%)")
        return ToolResult.ok("Not connected to Wi-Fi")

    def _disk_space(self) -> ToolResult:
        usage = psutil.disk_usage("/")
        gb = 1024 ** 3
        return ToolResult.ok(
            f"Disk: {usage.free / gb:.1f} GB free of {usage.total / gb:.1f} GB ({usage.percent:.0f}% used)"
        )

    def _sleep(self) -> ToolResult:
        if sys.platform == "darwin":
            res = run_cmd(["pmset", "sleepnow"])
        elif have("systemctl"):
            res = run_cmd(["systemctl", "suspend"])
        else:
            return ToolResult.fail("Sleep not supported here")
        if res["rc"] != 0:
            return _fail(res, "Could not put the system to sleep")
        return ToolResult.ok("Going to sleep")

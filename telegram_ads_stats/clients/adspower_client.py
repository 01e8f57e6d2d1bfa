from __future__ import annotations

from typing import Any

import requests

from telegram_ads_stats.errors import ProfileSessionError


class AdsPowerClient:
    """Client for the AdsPower local API (browser profile start/stop)."""

    def __init__(
        self,
        *,
        api_url: str = "http://local.adspower.net:50325",
        timeout_sec: int = 60,
    ) -> None:
        self.api_url = api_url.strip().rstrip("/")
        self.timeout_sec = max(5, int(timeout_sec))

    def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        response = requests.get(
            f"{self.api_url}{path}",
            params=params,
            timeout=self.timeout_sec,
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ProfileSessionError(f"Unexpected AdsPower payload for {path}: {payload!r}")
        return payload

    def start_profile(self, profile_id: str, *, headless: bool = True) -> str:
        """Start a profile and return its CDP websocket endpoint."""

        profile = profile_id.strip()
        if not profile:
            raise ProfileSessionError("AdsPower profile id is missing.")
        try:
            payload = self._get(
                "/api/v1/browser/start",
                {"user_id": profile, "headless": "1" if headless else "0"},
            )
        except requests.RequestException as exc:
            raise ProfileSessionError(f"AdsPower profile start failed: {exc}") from exc

        if int(payload.get("code", 0) or 0) != 0:
            raise ProfileSessionError(
                f"AdsPower refused to start profile {profile}: {payload.get('msg', 'unknown error')}"
            )
        data = payload.get("data") or {}
        ws = data.get("ws") if isinstance(data, dict) else None
        endpoint = str((ws or {}).get("puppeteer", "")).strip() if isinstance(ws, dict) else ""
        if not endpoint:
            raise ProfileSessionError(f"AdsPower returned no websocket endpoint for profile {profile}.")
        return endpoint

    def stop_profile(self, profile_id: str) -> bool:
        profile = profile_id.strip()
        if not profile:
            return False
        try:
            payload = self._get("/api/v1/browser/stop", {"user_id": profile})
        except Exception:  # noqa: BLE001
            return False
        return int(payload.get("code", 0) or 0) == 0

"""Still-image capture from HTTP camera snapshot endpoints."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Sequence

import httpx
from loguru import logger

from skycast.capture.base import BaseCapture, CaptureError
from skycast.config.schema import CameraConfig
from skycast.models import DeliverableItem
from skycast.storage.fallback import write_items

USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 skycast"


class SnapshotCapture(BaseCapture):
    """
    Downloads one frame per camera until ``target_count`` frames are collected.

    Cameras are tried in configured order. A camera that errors, times out or
    serves something that is not an image is skipped; the run only fails when
    no camera produced a frame.
    """

    name = "snapshot"

    def __init__(
        self,
        cameras: Sequence[CameraConfig],
        target_count: int = 3,
        timeout: float = 30.0,
        save_dir: Path | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.cameras = list(cameras)
        self.target_count = target_count
        self.timeout = timeout
        self.save_dir = save_dir
        self._client = client

    async def capture(self) -> list[DeliverableItem]:
        if not self.cameras:
            raise CaptureError("No cameras configured")

        if self._client is not None:
            items = await self._capture_with(self._client)
        else:
            async with httpx.AsyncClient(
                headers={"User-Agent": USER_AGENT},
                follow_redirects=True,
            ) as client:
                items = await self._capture_with(client)

        if not items:
            raise CaptureError("No images were captured")

        if self.save_dir is not None:
            try:
                write_items(self.save_dir, items)
                logger.debug(f"Saved {len(items)} captures to {self.save_dir}")
            except OSError as e:
                logger.warning(f"Could not save captures to {self.save_dir}: {e}")

        return items

    async def _capture_with(self, client: httpx.AsyncClient) -> list[DeliverableItem]:
        items: list[DeliverableItem] = []
        for camera in self.cameras:
            if len(items) >= self.target_count:
                break
            logger.info(f"[{len(items) + 1}/{self.target_count}] Capturing {camera.label!r}")
            try:
                payload = await asyncio.wait_for(self._fetch(client, camera), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Capture of {camera.label!r} timed out after {self.timeout:g}s")
                continue
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Capture of {camera.label!r} failed: {e}")
                continue
            items.append(DeliverableItem(label=camera.label, payload=payload))
        logger.info(f"Captured {len(items)} of {self.target_count} requested images")
        return items

    async def _fetch(self, client: httpx.AsyncClient, camera: CameraConfig) -> bytes:
        response = await client.get(camera.url)
        response.raise_for_status()
        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("image/"):
            raise ValueError(f"unexpected content type {content_type or 'none'!r}")
        if not response.content:
            raise ValueError("empty image body")
        return response.content

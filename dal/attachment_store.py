"""Filesystem storage for design files customers upload."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import aiofiles


class AttachmentStore:
	"""Write uploads under `<base_dir>/<user_id>/` and return their paths."""

	def __init__(self, base_dir: Optional[Path | str] = None) -> None:
		self.base_dir = Path(base_dir) if base_dir else Path(__file__).resolve().parent.parent / "database" / "uploads"

	async def save(self, user_id: str, filename: str, data: bytes) -> str:
		"""Save `data` as `filename` for `user_id`.

		`filename` must already be safe (see `utils.media_validation.attachment_filename`).
		"""
		folder = self.base_dir / "".join(ch for ch in user_id if ch.isalnum() or ch in "-_")
		folder.mkdir(parents=True, exist_ok=True)
		path = folder / filename
		async with aiofiles.open(path, "wb") as f:
			await f.write(data)
		return str(path)

import json
import os
from datetime import datetime
from datetime import timezone

from changelib import events


CACHE_FORMAT_VERSION = 1


#============================================
class EventCache:
	"""
	Single JSON file holding the last known-good issue event snapshot.
	"""

	def __init__(self, cache_path: str = "", repo_full_name: str = "", log_fn=None):
		self.cache_path = os.path.abspath(cache_path) if cache_path else ""
		self.repo_full_name = repo_full_name
		self.log_fn = log_fn

	#============================================
	def log(self, message: str) -> None:
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def _valid_event(self, event) -> bool:
		if not isinstance(event, dict):
			return False
		if not isinstance(event.get("id"), int):
			return False
		if not isinstance(event.get("event"), str):
			return False
		try:
			events.parse_iso(str(event.get("created_at", "")))
		except ValueError:
			return False
		issue = event.get("issue")
		if (issue is not None) and not isinstance(issue, dict):
			return False
		return True

	#============================================
	def load(self) -> list[dict]:
		"""
		Return cached events newest first, or [] when absent or unreadable.
		"""
		if not self.cache_path:
			return []
		if not os.path.isfile(self.cache_path):
			return []
		try:
			with open(self.cache_path, "r", encoding="utf-8") as handle:
				payload = json.load(handle)
		except (OSError, ValueError) as error:
			self.log(f"Warning: ignoring unreadable event cache {self.cache_path}: {error}")
			return []
		if not isinstance(payload, dict):
			self.log(f"Warning: ignoring malformed event cache {self.cache_path}")
			return []
		cached_repo = str(payload.get("repo_full_name", ""))
		if self.repo_full_name and cached_repo and (cached_repo != self.repo_full_name):
			self.log(
				f"Warning: event cache {self.cache_path} belongs to {cached_repo}, "
				+ f"not {self.repo_full_name}; ignoring it."
			)
			return []
		cached_events = payload.get("events")
		if not isinstance(cached_events, list):
			self.log(f"Warning: ignoring malformed event cache {self.cache_path}")
			return []
		for event in cached_events:
			if not self._valid_event(event):
				self.log(f"Warning: ignoring event cache with invalid entry {self.cache_path}")
				return []
		return events.normalize_events(cached_events)

	#============================================
	def store(self, event_list: list[dict]) -> str:
		"""
		Overwrite the cache with the full event sequence; no-op without a path.
		"""
		if not self.cache_path:
			return ""
		ordered = events.normalize_events(event_list)
		head_time = events.snapshot_head_time(ordered)
		payload = {
			"version": CACHE_FORMAT_VERSION,
			"repo_full_name": self.repo_full_name,
			"fetched_at": datetime.now(timezone.utc).isoformat(),
			"head_created_at": head_time.isoformat() if head_time else "",
			"events": ordered,
		}
		cache_dir = os.path.dirname(self.cache_path)
		if cache_dir:
			os.makedirs(cache_dir, exist_ok=True)
		tmp_path = f"{self.cache_path}.tmp"
		try:
			with open(tmp_path, "w", encoding="utf-8") as handle:
				json.dump(payload, handle, ensure_ascii=True, sort_keys=True, indent=2)
				handle.write("\n")
			os.replace(tmp_path, self.cache_path)
		except (OSError, TypeError, ValueError):
			# a partial temp file must not outlive a failed store
			if os.path.exists(tmp_path):
				os.remove(tmp_path)
			raise
		return self.cache_path

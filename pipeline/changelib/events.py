"""Issue and event record shaping, ordering and deduplication.

Records are plain dicts shaped like the GitHub REST payloads. Event
collections handed out by this module are newest first, with ties on
created_at broken by descending event id.
"""

from datetime import datetime
from datetime import timezone


CORRELATED_EVENT_KINDS = ("closed", "merged")
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


#============================================
def parse_iso(ts: str) -> datetime:
	"""
	Parse an ISO timestamp string into a timezone-aware datetime.
	"""
	if not ts:
		return EPOCH
	parsed = datetime.fromisoformat(ts.replace("Z", "+00:00"))
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=timezone.utc)
	return parsed


#============================================
def to_utc_iso(value) -> str:
	"""
	Convert datetime-like values to ISO-8601 UTC strings.
	"""
	if value is None:
		return ""
	if isinstance(value, str):
		return value
	if isinstance(value, datetime):
		if value.tzinfo is None:
			value = value.replace(tzinfo=timezone.utc)
		return value.astimezone(timezone.utc).isoformat()
	return str(value)


#============================================
def is_pull_request(item: dict) -> bool:
	return "pull_request" in item


#============================================
def issue_summary(item: dict) -> dict:
	"""
	Reduce an issue dict to the fields an event reference carries.
	"""
	return {
		"number": item.get("number"),
		"title": item.get("title") or "",
		"html_url": item.get("html_url") or "",
		"is_pull_request": bool(item.get("is_pull_request") or is_pull_request(item)),
	}


#============================================
def raw_payload(obj) -> dict:
	"""
	Return the REST payload behind a PyGithub object, or the dict itself.

	Only raw_data is read; attribute access on list results can issue
	lazy completion requests.
	"""
	if isinstance(obj, dict):
		return obj
	return getattr(obj, "raw_data", {}) or {}


#============================================
def issue_to_dict(issue_obj) -> dict:
	"""
	Normalize a PyGithub issue object to a compact REST-like dict.
	"""
	data = raw_payload(issue_obj)
	issue = {
		"number": data.get("number"),
		"title": data.get("title") or "",
		"html_url": data.get("html_url") or "",
		"state": data.get("state") or "",
		"closed_at": to_utc_iso(data.get("closed_at")),
		"updated_at": to_utc_iso(data.get("updated_at")),
		"labels": [
			label.get("name", "") if isinstance(label, dict) else str(label)
			for label in data.get("labels") or []
		],
		"closed_by_issue": None,
	}
	pull_request = data.get("pull_request")
	if pull_request is not None:
		issue["pull_request"] = {"html_url": (pull_request or {}).get("html_url", "")}
	return issue


#============================================
def event_to_dict(event_obj) -> dict:
	"""
	Normalize a PyGithub issue event object to the cached event shape.
	"""
	data = raw_payload(event_obj)
	issue_data = data.get("issue")
	event = {
		"id": int(data.get("id") or 0),
		"event": data.get("event") or "",
		"created_at": to_utc_iso(data.get("created_at")),
		"issue": issue_summary(issue_data) if issue_data else None,
	}
	return event


#============================================
def event_issue_number(event: dict):
	issue = event.get("issue") or {}
	return issue.get("number")


#============================================
def event_sort_key(event: dict) -> tuple[datetime, int]:
	return parse_iso(event.get("created_at", "")), int(event.get("id", 0))


#============================================
def normalize_events(event_list: list[dict]) -> list[dict]:
	"""
	Deduplicate events on (created_at, id) and order them newest first.

	Duplicates come from overlapping page boundaries and from the overlap
	between a cached snapshot and a live fetch; they collapse into one entry,
	the later occurrence winning. Ties on created_at order by descending id.

	Args:
		event_list: events in any order, possibly with duplicates.

	Returns:
		New list, strictly descending by (created_at, id).
	"""
	keyed = {}
	for event in event_list:
		keyed[event_sort_key(event)] = event
	ordered_keys = sorted(keyed.keys(), reverse=True)
	return [keyed[key] for key in ordered_keys]


#============================================
def filter_event_types(event_list: list[dict]) -> list[dict]:
	"""
	Keep only the closed and merged events, preserving order.
	"""
	return [
		event for event in event_list
		if event.get("event") in CORRELATED_EVENT_KINDS
	]


#============================================
def snapshot_head_time(snapshot: list[dict]) -> datetime | None:
	"""
	Return created_at of the newest event in a snapshot, or None when empty.
	"""
	if not snapshot:
		return None
	return max(parse_iso(event.get("created_at", "")) for event in snapshot)


#============================================
def merge_event_snapshot(snapshot: list[dict], fetched: list[dict]) -> list[dict]:
	"""
	Merge a cached snapshot with freshly fetched events into a new snapshot.
	"""
	return normalize_events(list(snapshot) + list(fetched))

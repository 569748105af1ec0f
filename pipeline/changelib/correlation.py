"""Correlate closed/merged events with the items they closed.

GitHub has no direct link between "this pull request's body says
'fixes #NN'" and the resulting issue close event. The best signal available
is an exact created_at match between the issue's close and another item's
close event. When several other items closed in the same instant, the
first one in event order (newest first, higher event id first) wins. That
pick is a heuristic and can name the wrong item when three or more items
close together.
"""

from changelib import events


#============================================
def find_simultaneous_close(item: dict, filtered_events: list[dict]) -> dict | None:
	"""
	Return the first closed event at the item's closed_at for another item.
	"""
	closed_at_text = item.get("closed_at") or ""
	if not closed_at_text:
		return None
	closed_at = events.parse_iso(closed_at_text)
	number = item.get("number")
	for event in filtered_events:
		if event.get("event") != "closed":
			continue
		other_number = events.event_issue_number(event)
		if (other_number is None) or (other_number == number):
			continue
		if events.parse_iso(event.get("created_at", "")) == closed_at:
			return event
	return None


#============================================
def attribute_simultaneous_closures(items: list[dict], filtered_events: list[dict]) -> list[dict]:
	"""
	Set closed_by_issue on plain issues closed together with another item.

	Pull requests and items without closed_at are left alone. The closing
	item is resolved by number in items when present, otherwise the summary
	carried on the event is used. Each item is handled on its own, so the
	result does not depend on item order.

	Args:
		items: issue dicts, annotated in place.
		filtered_events: closed/merged events, newest first.

	Returns:
		The same items list.
	"""
	items_by_number = {item.get("number"): item for item in items}
	for item in items:
		if events.is_pull_request(item):
			continue
		match = find_simultaneous_close(item, filtered_events)
		if match is None:
			continue
		other_number = events.event_issue_number(match)
		item["closed_by_issue"] = items_by_number.get(other_number) or match["issue"]
	return items


#============================================
def merged_numbers(filtered_events: list[dict]) -> set[int]:
	return {
		events.event_issue_number(event)
		for event in filtered_events
		if event.get("event") == "merged"
	}


#============================================
def filter_merged(
	items: list[dict],
	filtered_events: list[dict],
	merged_only: bool,
	merge_status_fn=None,
	log_fn=None,
) -> list[dict]:
	"""
	Drop pull requests that were closed without being merged.

	Plain issues always stay. A pull request stays only when a merged event
	names it. When merge_status_fn is given, a pull request with no closed or
	merged event in the window at all is checked with merge_status_fn(number)
	instead; one with a closed event but no merged event is dropped without
	a lookup.

	Args:
		items: issue dicts in output order.
		filtered_events: closed/merged events.
		merged_only: when False the items are returned unchanged.
		merge_status_fn: optional callable(number) -> bool.
		log_fn: optional callable for progress logging.

	Returns:
		New list of kept items, order preserved.
	"""
	if not merged_only:
		return list(items)
	merged = merged_numbers(filtered_events)
	seen = {events.event_issue_number(event) for event in filtered_events}
	kept = []
	for item in items:
		if not events.is_pull_request(item):
			kept.append(item)
			continue
		number = item.get("number")
		if number in merged:
			kept.append(item)
			continue
		if (merge_status_fn is not None) and (number not in seen):
			if log_fn:
				log_fn(f"No events for #{number} in window; checking merge status.")
			if merge_status_fn(number):
				kept.append(item)
				continue
		if log_fn:
			log_fn(f"Skipping unmerged pull request #{number}.")
	return kept

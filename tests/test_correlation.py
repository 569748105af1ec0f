import os
import sys


REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
PIPELINE_DIR = os.path.join(REPO_ROOT, "pipeline")
if PIPELINE_DIR not in sys.path:
	sys.path.insert(0, PIPELINE_DIR)

from changelib import correlation


T = "2026-03-01T10:00:00+00:00"
LATER = "2026-03-01T10:00:01+00:00"


#============================================
def make_item(number: int, closed_at: str = T, pull: bool = False) -> dict:
	"""
	Build one closed item dict.
	"""
	item = {
		"number": number,
		"title": f"Item {number}",
		"html_url": f"https://github.com/acme/widgets/issues/{number}",
		"closed_at": closed_at,
		"closed_by_issue": None,
	}
	if pull:
		item["pull_request"] = {}
	return item


#============================================
def make_event(event_id: int, number: int, kind: str = "closed", created_at: str = T) -> dict:
	return {
		"id": event_id,
		"event": kind,
		"created_at": created_at,
		"issue": {
			"number": number,
			"title": f"Item {number}",
			"html_url": f"https://github.com/acme/widgets/pull/{number}",
			"is_pull_request": True,
		},
	}


#============================================
def test_issue_attributed_to_simultaneous_pull_request() -> None:
	"""
	An issue closed in the same instant as a pull request is closed by it.
	"""
	issue = make_item(10)
	pull = make_item(11, pull=True)
	filtered = [make_event(2, 11), make_event(1, 10)]
	correlation.attribute_simultaneous_closures([issue, pull], filtered)
	assert issue["closed_by_issue"] is pull
	assert pull["closed_by_issue"] is None


#============================================
def test_no_simultaneous_close_leaves_issue_unset() -> None:
	"""
	Without another close at exactly the same time nothing is attributed.
	"""
	issue = make_item(10)
	filtered = [make_event(2, 11, created_at=LATER), make_event(1, 10)]
	correlation.attribute_simultaneous_closures([issue], filtered)
	assert issue["closed_by_issue"] is None


#============================================
def test_own_close_event_is_not_a_match() -> None:
	"""
	The issue's own close event never attributes the issue to itself.
	"""
	issue = make_item(10)
	correlation.attribute_simultaneous_closures([issue], [make_event(1, 10)])
	assert issue["closed_by_issue"] is None


#============================================
def test_merged_event_at_same_time_is_not_a_close() -> None:
	"""
	Only closed events attribute closure.
	"""
	issue = make_item(10)
	filtered = [make_event(3, 11, kind="merged"), make_event(1, 10)]
	correlation.attribute_simultaneous_closures([issue], filtered)
	assert issue["closed_by_issue"] is None


#============================================
def test_first_event_in_order_wins_tie() -> None:
	"""
	With several simultaneous closes, the first one in event order is used.
	"""
	issue = make_item(10)
	filtered = [make_event(9, 13), make_event(8, 12), make_event(1, 10)]
	correlation.attribute_simultaneous_closures([issue], filtered)
	assert issue["closed_by_issue"]["number"] == 13


#============================================
def test_closing_item_outside_collection_uses_event_summary() -> None:
	"""
	A closing item absent from the item list is taken from the event.
	"""
	issue = make_item(10)
	correlation.attribute_simultaneous_closures([issue], [make_event(2, 11)])
	assert issue["closed_by_issue"] == {
		"number": 11,
		"title": "Item 11",
		"html_url": "https://github.com/acme/widgets/pull/11",
		"is_pull_request": True,
	}


#============================================
def test_items_without_closed_at_and_pull_requests_skipped() -> None:
	"""
	Open-ended items and pull requests are never annotated.
	"""
	no_time = make_item(10, closed_at="")
	pull = make_item(12, pull=True)
	filtered = [make_event(3, 11), make_event(2, 12)]
	correlation.attribute_simultaneous_closures([no_time, pull], filtered)
	assert no_time["closed_by_issue"] is None
	assert pull["closed_by_issue"] is None


#============================================
def test_attribution_independent_of_item_order() -> None:
	"""
	Reversing the item list gives the same annotations.
	"""
	filtered = [make_event(3, 11), make_event(2, 20), make_event(1, 10)]
	forward = [make_item(10), make_item(11, pull=True), make_item(20)]
	backward = [make_item(20), make_item(11, pull=True), make_item(10)]
	correlation.attribute_simultaneous_closures(forward, filtered)
	correlation.attribute_simultaneous_closures(backward, filtered)
	forward_map = {
		item["number"]: (item["closed_by_issue"] or {}).get("number") for item in forward
	}
	backward_map = {
		item["number"]: (item["closed_by_issue"] or {}).get("number") for item in backward
	}
	assert forward_map == backward_map
	assert forward_map[10] == 11


#============================================
def test_filter_merged_drops_closed_only_pull_request() -> None:
	"""
	A pull request with a closed event but no merged event is dropped.
	"""
	issue = make_item(10)
	merged_pull = make_item(11, pull=True)
	closed_pull = make_item(12, pull=True)
	filtered = [
		make_event(4, 12),
		make_event(3, 11, kind="merged"),
		make_event(2, 11),
		make_event(1, 10),
	]
	kept = correlation.filter_merged([issue, merged_pull, closed_pull], filtered, True)
	assert [item["number"] for item in kept] == [10, 11]


#============================================
def test_filter_merged_never_drops_plain_issues() -> None:
	"""
	Plain issues stay whatever events exist.
	"""
	issues = [make_item(10), make_item(20)]
	assert correlation.filter_merged(issues, [], True) == issues


#============================================
def test_filter_merged_passthrough_when_disabled() -> None:
	"""
	Without merged-only filtering every item is returned.
	"""
	items = [make_item(10), make_item(12, pull=True)]
	kept = correlation.filter_merged(items, [make_event(1, 12)], False)
	assert kept == items
	assert kept is not items


#============================================
def test_filter_merged_status_fallback_only_without_events() -> None:
	"""
	The merge-status lookup runs only for pull requests with no events.
	"""
	checked = []

	def merge_status_fn(number: int) -> bool:
		checked.append(number)
		return number == 30

	items = [make_item(12, pull=True), make_item(30, pull=True), make_item(31, pull=True)]
	filtered = [make_event(1, 12)]
	kept = correlation.filter_merged(items, filtered, True, merge_status_fn=merge_status_fn)
	assert [item["number"] for item in kept] == [30]
	assert checked == [30, 31]

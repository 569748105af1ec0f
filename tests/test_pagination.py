import os
import sys

import pytest


REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
PIPELINE_DIR = os.path.join(REPO_ROOT, "pipeline")
if PIPELINE_DIR not in sys.path:
	sys.path.insert(0, PIPELINE_DIR)

from changelib import pagination


#============================================
def make_page_source(page_sizes: list[int]):
	"""
	Build a fetch_page callable serving numbered records plus a call log.
	"""
	calls = []

	def fetch_page(page: int, per_page: int) -> list[int]:
		calls.append((page, per_page))
		index = page - 1
		if index >= len(page_sizes):
			return []
		start = sum(page_sizes[:index])
		return list(range(start, start + page_sizes[index]))

	return fetch_page, calls


#============================================
def test_short_page_stops_without_extra_request() -> None:
	"""
	Pages of 100, 100, 37 should stop after the third request.
	"""
	fetch_page, calls = make_page_source([100, 100, 37])
	records = pagination.fetch_all_pages(fetch_page, 100)
	assert len(records) == 237
	assert [page for page, _ in calls] == [1, 2, 3]
	assert records[:3] == [0, 1, 2]
	assert records[-1] == 236


#============================================
def test_stop_predicate_on_last_record() -> None:
	"""
	Full pages stop once the last record of a page crosses the boundary.
	"""
	fetch_page, calls = make_page_source([100, 100, 100, 100, 100])
	# records are numbered 0..; treat numbers >= 250 as older than the cutoff
	records = pagination.fetch_all_pages(
		fetch_page,
		100,
		stop_fn=lambda record: record >= 250,
	)
	assert len(records) == 300
	assert len(calls) == 3


#============================================
def test_empty_first_page_returns_empty_list() -> None:
	"""
	An empty first page ends the fetch with no records.
	"""
	fetch_page, calls = make_page_source([])
	assert pagination.fetch_all_pages(fetch_page, 50) == []
	assert calls == [(1, 50)]


#============================================
def test_start_page_and_per_page_forwarded() -> None:
	"""
	Start page and page size should be passed through to fetch_page.
	"""
	fetch_page, calls = make_page_source([10, 10, 4])
	pagination.fetch_all_pages(fetch_page, 10, start_page=2)
	assert calls == [(2, 10), (3, 10)]


#============================================
def test_fetch_error_propagates_without_retry() -> None:
	"""
	A failing page request aborts the whole fetch immediately.
	"""
	calls = []

	def fetch_page(page: int, per_page: int) -> list[int]:
		calls.append(page)
		if page == 2:
			raise RuntimeError("boom")
		return list(range(per_page))

	with pytest.raises(RuntimeError):
		pagination.fetch_all_pages(fetch_page, 5)
	assert calls == [1, 2]


#============================================
def test_invalid_page_size_rejected() -> None:
	"""
	A page size below one cannot signal a last page.
	"""
	with pytest.raises(ValueError):
		pagination.fetch_all_pages(lambda page, per_page: [], 0)


#============================================
def test_log_fn_reports_each_page() -> None:
	"""
	log_fn should receive one line per fetched page.
	"""
	fetch_page, _ = make_page_source([3, 1])
	lines = []
	pagination.fetch_all_pages(fetch_page, 3, log_fn=lines.append, label="event")
	assert lines == [
		"Fetched event page 1: 3 record(s).",
		"Fetched event page 2: 1 record(s).",
	]

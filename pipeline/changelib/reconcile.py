"""Sequential changelog pipeline: items, events, cache, correlation.

Each stage returns its result to the next; any exception aborts the run
before the event cache is rewritten.
"""

from changelib import correlation
from changelib import events
from changelib import pagination
from changelib.event_cache import EventCache


#============================================
def fetch_closed_items(client, config, log_fn=None) -> list[dict]:
	"""
	Fetch every closed issue and pull request updated since the cutoff.
	"""
	def fetch_page(page: int, per_page: int) -> list[dict]:
		return client.list_closed_items(
			config.owner,
			config.repo,
			config.since,
			list(config.labels),
			page,
			per_page,
		)
	return pagination.fetch_all_pages(
		fetch_page,
		config.per_page,
		log_fn=log_fn,
		label="closed item",
	)


#============================================
def build_event_stop_fn(since, snapshot_head):
	"""
	Build the page stop predicate for newest-first event pages.

	Paging stops once a page reaches back past the cutoff, or back to the
	newest event already held in the cached snapshot.
	"""
	def stop_fn(event: dict) -> bool:
		created_at = events.parse_iso(event.get("created_at", ""))
		if created_at < since:
			return True
		if (snapshot_head is not None) and (created_at <= snapshot_head):
			return True
		return False
	return stop_fn


#============================================
def fetch_events(client, config, cache: EventCache, log_fn=None) -> list[dict]:
	"""
	Return the merged, normalized event history and refresh the cache.

	The cache is only rewritten after every page was fetched.
	"""
	snapshot = cache.load()
	snapshot_head = events.snapshot_head_time(snapshot)
	if log_fn:
		if snapshot_head is None:
			log_fn("No cached events; fetching event history from the API.")
		else:
			log_fn(
				f"Loaded {len(snapshot)} cached event(s), newest {snapshot_head.isoformat()}."
			)

	def fetch_page(page: int, per_page: int) -> list[dict]:
		return client.list_repository_events(config.owner, config.repo, page, per_page)

	fetched = pagination.fetch_all_pages(
		fetch_page,
		config.per_page,
		stop_fn=build_event_stop_fn(config.since, snapshot_head),
		log_fn=log_fn,
		label="event",
	)
	merged = events.merge_event_snapshot(snapshot, fetched)
	cache_path = cache.store(merged)
	if log_fn and cache_path:
		log_fn(f"Wrote event cache {cache_path} ({len(merged)} events).")
	return merged


#============================================
def reconcile(client, config, cache: EventCache | None = None, log_fn=None) -> list[dict]:
	"""
	Run fetch, cache, normalize, filter and correlate for one repository.

	Args:
		client: object with list_closed_items, list_repository_events and
			get_merge_status (see GitHubClient).
		config: RunConfig for this run.
		cache: EventCache; defaults to one built from config.cache_path.
		log_fn: optional callable for progress logging.

	Returns:
		Closed items, annotated with closed_by_issue and, for merged-only
		runs, without unmerged pull requests.
	"""
	if cache is None:
		cache = EventCache(config.cache_path, config.repo_full_name, log_fn=log_fn)
	items = fetch_closed_items(client, config, log_fn=log_fn)
	if log_fn:
		log_fn(f"Collected {len(items)} closed item(s) for {config.repo_full_name}.")
	all_events = fetch_events(client, config, cache, log_fn=log_fn)
	filtered_events = events.filter_event_types(all_events)
	correlation.attribute_simultaneous_closures(items, filtered_events)
	merge_status_fn = None
	if config.merge_check_fallback:
		def merge_status_fn(number: int) -> bool:
			return client.get_merge_status(config.owner, config.repo, number)
	result = correlation.filter_merged(
		items,
		filtered_events,
		config.merged_only,
		merge_status_fn=merge_status_fn,
		log_fn=log_fn,
	)
	if log_fn:
		log_fn(f"Reconciled {len(result)} item(s) for the changelog.")
	return result

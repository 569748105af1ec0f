"""Sequential page-by-page retrieval of ordered record collections."""


#============================================
def fetch_all_pages(
	fetch_page,
	per_page: int,
	start_page: int = 1,
	stop_fn=None,
	log_fn=None,
	label: str = "records",
) -> list:
	"""
	Fetch pages one at a time and concatenate them.

	Stops when a page comes back shorter than per_page (last page), or when
	stop_fn(last_record_of_page) is true (the page crossed a time boundary).
	Exceptions from fetch_page propagate immediately; nothing partial is
	returned and nothing is retried.

	Args:
		fetch_page: callable(page, per_page) -> list of records.
		per_page: requested page size.
		start_page: first page number to request.
		stop_fn: optional predicate over the last record of each page.
		log_fn: optional callable for progress logging.
		label: record description used in log lines.

	Returns:
		All records from every fetched page, in page order.
	"""
	if per_page < 1:
		raise ValueError(f"per_page must be >= 1, got {per_page}")
	records = []
	page = start_page
	while True:
		batch = list(fetch_page(page, per_page))
		records.extend(batch)
		if log_fn:
			log_fn(f"Fetched {label} page {page}: {len(batch)} record(s).")
		if len(batch) < per_page:
			break
		if (stop_fn is not None) and stop_fn(batch[-1]):
			break
		page += 1
	return records

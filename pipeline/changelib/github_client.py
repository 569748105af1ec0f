import random
import time
from datetime import datetime
from datetime import timezone

from changelib import events


#============================================
class RateLimitError(RuntimeError):
	"""
	Raised when GitHub API rate limits block further requests.
	"""


#============================================
class GitHubClient:
	"""
	Thin PyGithub wrapper exposing the three reads the changelog needs.
	"""

	def __init__(
		self,
		token: str = "",
		username: str = "",
		password: str = "",
		per_page: int = 100,
		jitter_seconds: float = 0.25,
		log_fn=None,
	):
		self.log_fn = log_fn
		self.per_page = int(per_page)
		self.jitter_seconds = float(jitter_seconds)
		self._rate_check_count = 0
		self._low_remaining_threshold = 5
		self._max_proactive_sleep_seconds = 60
		self._api_call_count = 0
		self._api_calls_by_context: dict[str, int] = {}
		self._repo_objects: dict[str, object] = {}
		try:
			from github import Auth
			from github import Github
			from github.GithubException import GithubException
		except ModuleNotFoundError as error:
			raise RuntimeError(
				"Missing dependency: PyGithub. Install it with pip install PyGithub."
			) from error
		self._github_exception_class = GithubException
		auth = self._build_auth(Auth, token, username, password)
		self.client = Github(auth=auth, per_page=self.per_page, retry=None)

	#============================================
	def _build_auth(self, auth_module, token: str, username: str, password: str):
		"""
		Pick token auth, basic auth, or anonymous access.
		"""
		if token:
			return auth_module.Token(token)
		if username and password:
			return auth_module.Login(username, password)
		return None

	#============================================
	def log(self, message: str) -> None:
		"""
		Emit one log line when logger is configured.
		"""
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def record_api_call(self, context: str) -> None:
		"""
		Track one outbound GitHub API call.
		"""
		self._api_call_count += 1
		if context not in self._api_calls_by_context:
			self._api_calls_by_context[context] = 0
		self._api_calls_by_context[context] += 1

	#============================================
	def api_usage_snapshot(self) -> dict:
		"""
		Return API call counters for reporting.
		"""
		return {
			"api_call_count": self._api_call_count,
			"api_calls_by_context": dict(self._api_calls_by_context),
		}

	#============================================
	def parse_rate_limit_reset(self, reset_value) -> datetime:
		"""
		Turn a reset value (datetime, epoch seconds or ISO text) into aware UTC.
		"""
		if isinstance(reset_value, (int, float)):
			return datetime.fromtimestamp(reset_value, tz=timezone.utc)
		if isinstance(reset_value, str):
			return events.parse_iso(reset_value)
		if not isinstance(reset_value, datetime):
			raise RuntimeError(f"Unsupported rate-limit reset value: {reset_value!r}")
		if reset_value.tzinfo is None:
			reset_value = reset_value.replace(tzinfo=timezone.utc)
		return reset_value.astimezone(timezone.utc)

	#============================================
	def get_core_rate_limit_snapshot(self) -> tuple[int, datetime]:
		"""
		Return (remaining, reset) for the core REST quota.

		Newer PyGithub nests the quotas under RateLimitOverview.resources.
		"""
		self.record_api_call("GET /rate_limit")
		overview = self.client.get_rate_limit()
		core = getattr(getattr(overview, "resources", overview), "core", None)
		if core is None:
			raise RuntimeError("GET /rate_limit returned no core quota.")
		return int(core.remaining), self.parse_rate_limit_reset(core.reset)

	#============================================
	def maybe_wait_for_rate_limit(self, context: str, force: bool = False) -> None:
		"""
		Every 15th call (or when forced) look at the core quota, and sleep
		until reset when it is nearly spent and the reset is close.
		"""
		self._rate_check_count += 1
		due = force or (self._rate_check_count % 15 == 0)
		if not due:
			return
		try:
			remaining, reset_time = self.get_core_rate_limit_snapshot()
		except (self._github_exception_class, RuntimeError) as error:
			self.log(f"Rate limit check ({context}) unavailable: {error}")
			return
		self.log(f"Rate limit check ({context}): {remaining} left, resets {reset_time.isoformat()}")
		if remaining > self._low_remaining_threshold:
			return
		wait_seconds = int((reset_time - datetime.now(timezone.utc)).total_seconds()) + 1
		if wait_seconds <= 0:
			return
		if wait_seconds > self._max_proactive_sleep_seconds:
			self.log(
				f"Rate limit nearly spent; reset is {wait_seconds}s away "
				+ f"(cap {self._max_proactive_sleep_seconds}s), continuing without waiting."
			)
			return
		self.log(f"Rate limit nearly spent ({remaining} left); waiting {wait_seconds}s for reset.")
		time.sleep(wait_seconds)

	#============================================
	def sleep_request_jitter(self) -> None:
		"""
		Add small random jitter before API calls.
		"""
		if self.jitter_seconds <= 0:
			return
		time.sleep(random.random() * self.jitter_seconds)

	#============================================
	def call_api(self, context: str, call_fn):
		"""
		Run one API call with jitter; failures propagate without retry.
		"""
		self.sleep_request_jitter()
		try:
			self.record_api_call(context)
			return call_fn()
		except self._github_exception_class as error:
			self.raise_from_github_error(error, context)

	#============================================
	def is_rate_limit_error(self, error: Exception) -> bool:
		"""
		Tell a rate-limit 403/429 apart from a permission 403.
		"""
		status = getattr(error, "status", None)
		if status not in (403, 429):
			return False
		headers = getattr(error, "headers", None) or {}
		lowered = {str(key).lower(): str(value) for key, value in headers.items()}
		if lowered.get("x-ratelimit-remaining") == "0":
			return True
		if "retry-after" in lowered:
			return True
		data = getattr(error, "data", None)
		message = data.get("message", "") if isinstance(data, dict) else str(data or "")
		return "rate limit" in message.lower()

	#============================================
	def raise_from_github_error(self, error: Exception, context: str) -> None:
		"""
		Raise a human-readable rate-limit error or re-raise original.
		"""
		if not self.is_rate_limit_error(error):
			raise error
		reset_text = "unknown"
		remaining_text = "unknown"
		try:
			remaining, reset_time = self.get_core_rate_limit_snapshot()
			reset_text = reset_time.isoformat()
			remaining_text = str(remaining)
		except (self._github_exception_class, RuntimeError):
			pass
		raise RateLimitError(
			"GitHub API rate limit exceeded while "
			+ f"{context}; remaining={remaining_text}; reset_at={reset_text}. "
			+ "Provide settings.yaml github.token for higher limits."
		) from error

	#============================================
	def _check_page_args(self, page: int, per_page: int) -> None:
		if page < 1:
			raise ValueError(f"page numbers start at 1, got {page}")
		if per_page != self.per_page:
			raise ValueError(
				f"per_page={per_page} does not match client page size {self.per_page}"
			)

	#============================================
	def get_repo(self, owner: str, repo: str):
		"""
		Get one repository object, looked up once per client.
		"""
		full_name = f"{owner}/{repo}"
		if full_name in self._repo_objects:
			return self._repo_objects[full_name]
		self.maybe_wait_for_rate_limit(f"get_repo {full_name}", force=True)
		repo_obj = self.call_api(
			f"GET /repos/{full_name}",
			lambda: self.client.get_repo(full_name),
		)
		self._repo_objects[full_name] = repo_obj
		return repo_obj

	#============================================
	def list_closed_items(
		self,
		owner: str,
		repo: str,
		since: datetime,
		labels: list[str],
		page: int,
		per_page: int,
	) -> list[dict]:
		"""
		List one page of closed issues and pull requests, most recently updated first.
		"""
		self._check_page_args(page, per_page)
		repo_obj = self.get_repo(owner, repo)
		self.maybe_wait_for_rate_limit(f"list_closed_items {owner}/{repo}")
		query = {
			"state": "closed",
			"sort": "updated",
			"direction": "desc",
			"since": since,
		}
		if labels:
			query["labels"] = list(labels)
		batch = self.call_api(
			f"GET /repos/{owner}/{repo}/issues",
			lambda: repo_obj.get_issues(**query).get_page(page - 1),
		)
		return [events.issue_to_dict(issue_obj) for issue_obj in batch]

	#============================================
	def list_repository_events(
		self,
		owner: str,
		repo: str,
		page: int,
		per_page: int,
	) -> list[dict]:
		"""
		List one page of issue lifecycle events, newest first.
		"""
		self._check_page_args(page, per_page)
		repo_obj = self.get_repo(owner, repo)
		self.maybe_wait_for_rate_limit(f"list_repository_events {owner}/{repo}")
		batch = self.call_api(
			f"GET /repos/{owner}/{repo}/issues/events",
			lambda: repo_obj.get_issues_events().get_page(page - 1),
		)
		return [events.event_to_dict(event_obj) for event_obj in batch]

	#============================================
	def get_merge_status(self, owner: str, repo: str, number: int) -> bool:
		"""
		Return True when pull request number was merged; 404 means not merged.
		"""
		repo_obj = self.get_repo(owner, repo)
		self.maybe_wait_for_rate_limit(f"get_merge_status {owner}/{repo}#{number}")
		context = f"GET /repos/{owner}/{repo}/pulls/{number}/merge"
		self.sleep_request_jitter()
		try:
			self.record_api_call(context)
			pull_obj = repo_obj.get_pull(number)
			return bool(pull_obj.is_merged())
		except self._github_exception_class as error:
			status = getattr(error, "status", None)
			if status == 404:
				return False
			self.raise_from_github_error(error, context)

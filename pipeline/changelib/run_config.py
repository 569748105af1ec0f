import os
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timezone

from changelib import events
from changelib import pipeline_settings


#============================================
class ConfigError(RuntimeError):
	"""
	Raised for invalid or missing options, before any network access.
	"""


#============================================
@dataclass(frozen=True)
class RunConfig:
	owner: str
	repo: str
	since: datetime
	header: str
	token: str = ""
	username: str = ""
	password: str = ""
	labels: tuple[str, ...] = field(default_factory=tuple)
	merged_only: bool = False
	merge_check_fallback: bool = False
	cache_path: str = ""
	template_path: str = ""
	item_template_path: str = ""
	output_path: str = ""
	per_page: int = 100
	jitter_seconds: float = 0.25

	@property
	def repo_full_name(self) -> str:
		return f"{self.owner}/{self.repo}"


#============================================
def parse_since(since_text: str) -> datetime:
	"""
	Parse a --since value; naive timestamps are taken as UTC.
	"""
	try:
		return events.parse_iso(since_text.strip())
	except ValueError as error:
		raise ConfigError(
			f"Invalid --since value {since_text!r}; expected an ISO-8601 timestamp."
		) from error


#============================================
def file_mtime(path: str) -> datetime:
	return datetime.fromtimestamp(os.path.getmtime(path), tz=timezone.utc)


#============================================
def build_run_config(args, settings: dict) -> RunConfig:
	"""
	Combine command-line arguments with YAML settings into one RunConfig.

	Command-line values win over settings. Raises ConfigError for missing
	repo or owner, a missing cutoff, an unreadable --since, a missing
	reference file, a password without a username, or a bad page size.
	"""
	repo = (args.repo or "").strip()
	if not repo:
		raise ConfigError('The "repo" option is required.')
	username = (args.username or "").strip() or pipeline_settings.get_setting_str(
		settings, ["github", "username"], ""
	)
	password = args.password or pipeline_settings.get_setting_str(
		settings, ["github", "password"], ""
	)
	token = (args.token or "").strip() or pipeline_settings.get_setting_str(
		settings, ["github", "token"], ""
	)
	owner = (args.owner or "").strip() or username
	if not owner:
		raise ConfigError('One of "username" or "owner" options must be provided.')
	if password and not username:
		raise ConfigError('The "password" option requires "username".')

	output_path = (args.file or "").strip()
	since_text = (args.since or "").strip()
	if not (since_text or output_path):
		raise ConfigError('One of "since" or "file" options must be provided.')
	if output_path and not os.path.isfile(output_path):
		raise ConfigError(f"File not found: {output_path}")
	if since_text:
		since = parse_since(since_text)
	else:
		since = file_mtime(output_path)

	per_page = pipeline_settings.get_setting_int(settings, ["github", "per_page"], 100)
	if not 1 <= per_page <= 100:
		raise ConfigError(f"github.per_page must be between 1 and 100, got {per_page}")

	labels = pipeline_settings.split_csv(args.labels or "")
	if not labels:
		labels = pipeline_settings.get_setting_list(settings, ["changelog", "labels"])

	template_path = (args.template or "").strip() or pipeline_settings.get_setting_str(
		settings, ["changelog", "template"], ""
	)
	if template_path and not os.path.isfile(template_path):
		raise ConfigError(f"Template not found: {template_path}")
	item_template_path = (
		(getattr(args, "item_template", "") or "").strip()
		or pipeline_settings.get_setting_str(settings, ["changelog", "item_template"], "")
	)
	if item_template_path and not os.path.isfile(item_template_path):
		raise ConfigError(f"Item template not found: {item_template_path}")

	header = (args.header or "").strip() or f"Changes since {since.isoformat()}"
	cache_path = (args.cache or "").strip() or pipeline_settings.get_setting_str(
		settings, ["changelog", "cache_path"], ""
	)
	config = RunConfig(
		owner=owner,
		repo=repo,
		since=since,
		header=header,
		token=token,
		username=username,
		password=password,
		labels=tuple(labels),
		merged_only=bool(args.merged),
		merge_check_fallback=pipeline_settings.get_setting_bool(
			settings, ["changelog", "merge_check_fallback"], False
		),
		cache_path=cache_path,
		template_path=template_path,
		item_template_path=item_template_path,
		output_path=output_path,
		per_page=per_page,
		jitter_seconds=pipeline_settings.get_setting_float(
			settings, ["github", "request_jitter_seconds"], 0.25
		),
	)
	return config

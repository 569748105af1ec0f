#!/usr/bin/env python3
import argparse
import sys
from datetime import datetime

from github.GithubException import GithubException

from changelib import changelog_render
from changelib import github_client
from changelib import pipeline_settings
from changelib import reconcile
from changelib import run_config
from changelib.event_cache import EventCache

try:
	import rich.console
except ModuleNotFoundError:
	rich = None


RICH_CONSOLE = rich.console.Console(stderr=True) if rich is not None else None


#============================================
def log_step(message: str) -> None:
	"""
	Print one timestamped progress line to stderr.
	"""
	now_text = datetime.now().strftime("%H:%M:%S")
	line = f"[github_changes {now_text}] {message}"
	if RICH_CONSOLE is None:
		print(line, file=sys.stderr, flush=True)
		return
	lower = message.lower()
	style = "cyan"
	if ("failed" in lower) or ("error" in lower) or ("aborting" in lower):
		style = "bold red"
	elif ("rate limit" in lower) or ("skipping" in lower) or ("warning" in lower):
		style = "yellow"
	elif ("wrote " in lower) or ("collected" in lower) or ("reconciled" in lower):
		style = "green"
	RICH_CONSOLE.print(line, style=style, markup=False, highlight=False)


#============================================
def build_parser() -> argparse.ArgumentParser:
	"""
	Build the command-line parser.
	"""
	parser = argparse.ArgumentParser(
		description="Generate a changelog of issues and pull requests closed since a date."
	)
	parser.add_argument(
		"-o", "--owner",
		default="",
		help='Repository owner name. If not provided, the "username" option is used.',
	)
	parser.add_argument(
		"-r", "--repo",
		default="",
		help="Repository name (required).",
	)
	parser.add_argument(
		"-u", "--username",
		default="",
		help="Your GitHub username (only required for private repos).",
	)
	parser.add_argument(
		"-p", "--password",
		default="",
		help="Your GitHub password (only required for private repos).",
	)
	parser.add_argument(
		"--token",
		default="",
		help="GitHub access token (falls back to settings.yaml github.token).",
	)
	parser.add_argument(
		"-l", "--labels",
		default="",
		help="Comma separated labels; only issues carrying all of them are listed.",
	)
	parser.add_argument(
		"-f", "--file",
		default="",
		help="Output file. If the file exists, the log is prepended to it. "
		+ "Default is to write to stdout.",
	)
	parser.add_argument(
		"-s", "--since",
		default="",
		help='Last changelog date (ISO-8601). If the "file" option is used and '
		+ '"since" is not provided, the mtime of the output file is used.',
	)
	parser.add_argument(
		"-m", "--merged",
		action="store_true",
		help="List merged pull requests only.",
	)
	parser.add_argument(
		"-e", "--header",
		default="",
		help='Header text. Default is "Changes since <since>".',
	)
	parser.add_argument(
		"-t", "--template",
		default="",
		help="Template used to format the changelog. The bundled template "
		+ "generates a Markdown list of issues.",
	)
	parser.add_argument(
		"--item-template",
		dest="item_template",
		default="",
		help="Template for one changelog line; tokens are {{number}}, {{title}}, "
		+ "{{url}}, {{closed_by}} and {{kind}}.",
	)
	parser.add_argument(
		"-c", "--cache",
		default="",
		help="JSON file caching repository issue events between runs.",
	)
	parser.add_argument(
		"--settings",
		default="settings.yaml",
		help="YAML settings path for defaults.",
	)
	return parser


#============================================
def run(config: run_config.RunConfig) -> str:
	"""
	Reconcile, render and write the changelog for one configured run.
	"""
	log_step(f"Building changelog for {config.repo_full_name} since {config.since.isoformat()}")
	if config.token:
		log_step("Using authenticated GitHub API mode via token.")
	elif config.username and config.password:
		log_step(f"Using basic authentication as {config.username}.")
	else:
		log_step("Using unauthenticated GitHub API mode (lower rate limit).")
	client = github_client.GitHubClient(
		token=config.token,
		username=config.username,
		password=config.password,
		per_page=config.per_page,
		jitter_seconds=config.jitter_seconds,
		log_fn=log_step,
	)
	cache = EventCache(config.cache_path, config.repo_full_name, log_fn=log_step)
	items = reconcile.reconcile(client, config, cache=cache, log_fn=log_step)
	text = changelog_render.render_changelog(
		items,
		config.header,
		config.owner,
		config.repo,
		template_path=config.template_path,
		item_template_path=config.item_template_path,
	)
	written = changelog_render.write_changelog(text, config.output_path)
	if written:
		log_step(f"Wrote changelog to {written}")
	usage = client.api_usage_snapshot()
	log_step(f"GitHub API usage: calls={usage.get('api_call_count', 0)}")
	return text


#============================================
def main(argv: list[str] | None = None) -> int:
	"""
	Run the changelog generator and return the process exit status.
	"""
	parser = build_parser()
	args = parser.parse_args(argv)
	try:
		settings, settings_path = pipeline_settings.load_settings(args.settings)
		config = run_config.build_run_config(args, settings)
	except run_config.ConfigError as error:
		log_step(f"Configuration error: {error}")
		parser.print_usage(sys.stderr)
		return 2
	except RuntimeError as error:
		log_step(f"Configuration error: {error}")
		return 2
	log_step(f"Using settings file: {settings_path}")
	try:
		run(config)
	except github_client.RateLimitError as error:
		log_step(str(error))
		log_step("Aborting changelog run; event cache left unchanged.")
		return 1
	except GithubException as error:
		log_step(f"GitHub API request failed: {error}")
		log_step("Aborting changelog run; event cache left unchanged.")
		return 1
	except OSError as error:
		log_step(f"I/O error: {error}")
		return 1
	except RuntimeError as error:
		log_step(f"Run failed: {error}")
		return 1
	return 0


if __name__ == "__main__":
	sys.exit(main())

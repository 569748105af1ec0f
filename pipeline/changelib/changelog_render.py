# Standard Library
import os
import sys


TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")
DEFAULT_DOCUMENT_TEMPLATE = "changelog.md"
DEFAULT_ITEM_TEMPLATE = "changelog_item.md"


#============================================
def load_template(path: str = "", name: str = DEFAULT_DOCUMENT_TEMPLATE) -> str:
	"""
	Load a template from path, or a bundled template by name.
	"""
	if not path:
		path = os.path.join(TEMPLATE_DIR, name)
	if not os.path.exists(path):
		raise FileNotFoundError(f"Template file not found: {path}")
	with open(path, "r", encoding="utf-8") as handle:
		return handle.read()


#============================================
def render_template(template: str, values: dict[str, str]) -> str:
	"""
	Replace {{token}} placeholders with supplied values.
	"""
	if not template:
		return ""
	rendered = template
	for key, value in values.items():
		token = "{{" + key + "}}"
		replacement = str(value) if value is not None else ""
		rendered = rendered.replace(token, replacement)
	return rendered


#============================================
def item_url(item: dict, owner: str, repo: str) -> str:
	url = (item or {}).get("html_url") or ""
	if url:
		return url
	return f"https://github.com/{owner}/{repo}/issues/{(item or {}).get('number')}"


#============================================
def format_item_line(item: dict, owner: str, repo: str, template: str) -> str:
	"""
	Render one changelog line, mentioning the closing item when known.
	"""
	closed_by = ""
	closing_item = item.get("closed_by_issue")
	if closing_item:
		closing_url = item_url(closing_item, owner, repo)
		closed_by = f" (closed by [#{closing_item.get('number')}]({closing_url}))"
	kind = "pull request" if "pull_request" in item else "issue"
	line = render_template(template, {
		"number": item.get("number"),
		"title": (item.get("title") or "").strip(),
		"url": item_url(item, owner, repo),
		"closed_by": closed_by,
		"kind": kind,
	})
	return line.rstrip("\n")


#============================================
def render_changelog(
	items: list[dict],
	header: str,
	owner: str,
	repo: str,
	template_path: str = "",
	item_template_path: str = "",
) -> str:
	"""
	Render the changelog document for reconciled items.

	Either template may be overridden by path; empty paths use the bundled
	changelog.md and changelog_item.md.
	"""
	document_template = load_template(template_path, DEFAULT_DOCUMENT_TEMPLATE)
	item_template = load_template(item_template_path, DEFAULT_ITEM_TEMPLATE)
	lines = [format_item_line(item, owner, repo, item_template) for item in items]
	return render_template(document_template, {
		"header": header,
		"owner": owner,
		"repo": repo,
		"items": "\n".join(lines),
	})


#============================================
def write_changelog(text: str, output_path: str = "", stream=None) -> str:
	"""
	Print to stdout, or prepend to output_path keeping its old content.
	"""
	if not output_path:
		out = stream if stream is not None else sys.stdout
		out.write(text)
		if not text.endswith("\n"):
			out.write("\n")
		return ""
	existing = ""
	if os.path.isfile(output_path):
		with open(output_path, "r", encoding="utf-8") as handle:
			existing = handle.read()
	output_dir = os.path.dirname(os.path.abspath(output_path))
	os.makedirs(output_dir, exist_ok=True)
	tmp_path = f"{output_path}.tmp"
	try:
		with open(tmp_path, "w", encoding="utf-8") as handle:
			handle.write(text)
			if existing and not text.endswith("\n"):
				handle.write("\n")
			handle.write(existing)
		os.replace(tmp_path, output_path)
	except (OSError, ValueError):
		if os.path.exists(tmp_path):
			os.remove(tmp_path)
		raise
	return output_path

import os

import yaml


#============================================
def get_repo_root() -> str:
	"""
	Return the checkout root, two levels above this package.
	"""
	package_dir = os.path.dirname(os.path.abspath(__file__))
	return os.path.dirname(os.path.dirname(package_dir))


#============================================
def resolve_settings_path(path_text: str) -> str:
	"""
	Resolve a relative settings path against cwd, then the checkout root.
	"""
	if os.path.isabs(path_text):
		return path_text
	cwd_candidate = os.path.abspath(path_text)
	if os.path.isfile(cwd_candidate):
		return cwd_candidate
	return os.path.abspath(os.path.join(get_repo_root(), path_text))


#============================================
def load_settings(path_text: str) -> tuple[dict, str]:
	"""
	Load the YAML settings mapping; a missing file means no settings.

	Unreadable files, YAML syntax errors and non-mapping documents raise
	RuntimeError naming the file.
	"""
	resolved_path = resolve_settings_path(path_text)
	if not os.path.isfile(resolved_path):
		return {}, resolved_path
	try:
		with open(resolved_path, "r", encoding="utf-8") as handle:
			data = yaml.safe_load(handle)
	except yaml.YAMLError as error:
		raise RuntimeError(
			f"Invalid YAML in settings file {resolved_path}: {error}. "
			+ "Fix the file or pass --settings with another path."
		) from error
	except (OSError, UnicodeDecodeError) as error:
		raise RuntimeError(f"Cannot read settings file {resolved_path}: {error}") from error
	if data is None:
		return {}, resolved_path
	if not isinstance(data, dict):
		raise RuntimeError(f"Settings file must contain a mapping: {resolved_path}")
	return data, resolved_path


#============================================
def get_nested_value(settings: dict, keys: list[str], default_value):
	"""
	Walk a key path through nested mappings, falling back to default_value.
	"""
	current = settings
	for key in keys:
		if (not isinstance(current, dict)) or (key not in current):
			return default_value
		current = current[key]
	return current


#============================================
def _convert(settings: dict, keys: list[str], default_value, convert, kind: str):
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	if isinstance(value, (dict, list)):
		raise RuntimeError(f"Invalid {kind} for setting path {'.'.join(keys)}: {value!r}")
	try:
		return convert(value)
	except (TypeError, ValueError) as error:
		raise RuntimeError(
			f"Invalid {kind} for setting path {'.'.join(keys)}: {value!r}"
		) from error


#============================================
def get_setting_str(settings: dict, keys: list[str], default_value: str) -> str:
	return _convert(settings, keys, default_value, lambda value: str(value).strip(), "string")


#============================================
def get_setting_int(settings: dict, keys: list[str], default_value: int) -> int:
	return _convert(settings, keys, default_value, int, "integer")


#============================================
def get_setting_float(settings: dict, keys: list[str], default_value: float) -> float:
	return _convert(settings, keys, default_value, float, "number")


#============================================
def _to_bool(value) -> bool:
	if isinstance(value, bool):
		return value
	if isinstance(value, int):
		return value != 0
	text = str(value).strip().lower()
	if text in {"1", "true", "yes", "on"}:
		return True
	if text in {"0", "false", "no", "off"}:
		return False
	raise ValueError(text)


#============================================
def get_setting_bool(settings: dict, keys: list[str], default_value: bool) -> bool:
	"""
	Read a boolean; accepts yes/no, on/off, true/false and 1/0 spellings.
	"""
	return _convert(settings, keys, default_value, _to_bool, "boolean")


#============================================
def get_setting_list(settings: dict, keys: list[str]) -> list[str]:
	"""
	Read a list of strings; a comma separated string is split.
	"""
	value = get_nested_value(settings, keys, [])
	if value is None:
		return []
	if isinstance(value, str):
		return split_csv(value)
	if not isinstance(value, list):
		raise RuntimeError(f"Invalid list for setting path {'.'.join(keys)}: {value!r}")
	return [str(entry).strip() for entry in value if str(entry).strip()]


#============================================
def split_csv(text: str) -> list[str]:
	return [part.strip() for part in (text or "").split(",") if part.strip()]

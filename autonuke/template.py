"""Render the aws-nuke configuration from a template with named slots.

Slots look like ``{{ account_id }}``. ``account_id`` is replaced inline.
``blocklist`` and ``regions`` are block slots: each must be alone on its
line, and that line becomes one YAML list entry per value at the slot's
indentation. Everything else in the template is left untouched.
"""
import os
import re
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Sequence

import yaml

from autonuke.core.errors import TemplateError

SCALAR_SLOTS = ("account_id",)
BLOCK_SLOTS = ("blocklist", "regions")

SLOT_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")
BLOCK_LINE_RE = re.compile(r"^(?P<indent>[ \t]*)\{\{\s*(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*\}\}[ \t]*$")


def _block(indent: str, values: Iterable[str]) -> str:
    return "".join(f"{indent}- {value}\n" for value in values)


def render(template: str, account_id: str, blocklist: Sequence[str], regions: Sequence[str]) -> str:
    """Render ``template``.

    Raises:
        TemplateError: on a missing, unknown or misplaced slot, or when the
            result is not valid YAML
    """
    names = set(SLOT_RE.findall(template))
    unknown = names - set(SCALAR_SLOTS) - set(BLOCK_SLOTS)
    if unknown:
        raise TemplateError(f"Unknown template slot(s): {', '.join(sorted(unknown))}")
    missing = (set(SCALAR_SLOTS) | set(BLOCK_SLOTS)) - names
    if missing:
        raise TemplateError(f"Template is missing slot(s): {', '.join(sorted(missing))}")

    blocks = {"blocklist": blocklist, "regions": regions}
    seen = set()
    out = []
    for line in template.splitlines(keepends=True):
        match = BLOCK_LINE_RE.match(line.rstrip("\r\n"))
        if match and match.group("name") in BLOCK_SLOTS:
            name = match.group("name")
            if name in seen:
                raise TemplateError(f"Block slot '{name}' appears more than once")
            seen.add(name)
            out.append(_block(match.group("indent"), blocks[name]))
            continue
        for name in SLOT_RE.findall(line):
            if name in BLOCK_SLOTS:
                raise TemplateError(f"Block slot '{name}' must be alone on its line")
        out.append(SLOT_RE.sub(lambda m: account_id, line))

    rendered = "".join(out)
    try:
        yaml.safe_load(rendered)
    except yaml.YAMLError as e:
        raise TemplateError(f"Rendered config is not valid YAML: {e}")
    return rendered


def render_file(path: str, account_id: str, blocklist: Sequence[str], regions: Sequence[str]) -> str:
    try:
        template = Path(path).read_text()
    except OSError as e:
        raise TemplateError(f"Cannot read config template {path}: {e}")
    return render(template, account_id, blocklist, regions)


def write_config(text: str, directory: Optional[str] = None, account_id: str = "") -> str:
    """Write the rendered config to a private temp file and return its path."""
    fd, path = tempfile.mkstemp(prefix=f"nuke-config-{account_id}-", suffix=".yaml", dir=directory)
    with os.fdopen(fd, "w") as f:
        f.write(text)
    return path

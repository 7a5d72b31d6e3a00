"""Read the detail page's download form so its submission can be replayed."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .models import FormSnapshot

logger = logging.getLogger(__name__)

# Runs in the page; reads live ``value`` properties, which may differ from the
# served markup once the site's scripts have filled the form.
_READ_FORM_JS = """
(args) => {
  const form = document.querySelector(args.selector);
  if (!form) return null;
  const query = args.hiddenOnly ? 'input[type="hidden"]' : 'input';
  const data = {};
  form.querySelectorAll(query).forEach(input => {
    if (input.name) {
      data[input.name] = input.value ?? '';
    }
  });
  return data;
}
"""


def snapshot_from_mapping(raw: Any) -> Optional[FormSnapshot]:
    if not isinstance(raw, dict):
        return None
    fields: Dict[str, str] = {}
    for key, value in raw.items():
        if not key:
            continue
        fields[str(key)] = "" if value is None else str(value)
    return FormSnapshot(fields)


async def read_form_snapshot(page, selector: str, *, hidden_only: bool = False) -> Optional[FormSnapshot]:
    """Return the form's fields, or None when no form matches ``selector``."""

    raw = await page.evaluate(_READ_FORM_JS, {"selector": selector, "hiddenOnly": hidden_only})
    snapshot = snapshot_from_mapping(raw)
    if snapshot is None:
        logger.debug("No form matched %s", selector)
    else:
        logger.debug("Form %s fields: %s", selector, sorted(snapshot.fields))
    return snapshot


__all__ = ["read_form_snapshot", "snapshot_from_mapping"]

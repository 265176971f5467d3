"""YAML frontmatter helpers for Markdown notes."""
import logging
from typing import Any, Dict, Tuple

import yaml

logger = logging.getLogger(__name__)

DELIMITER = '---'


def split_frontmatter(text: str) -> Tuple[Dict[str, Any], str]:
    """
    Split note text into its metadata block and body.

    Args:
        text: Full note text

    Returns:
        Tuple of (metadata dict, body). Notes without a frontmatter block,
        or with one that is not a YAML mapping, yield empty metadata.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != DELIMITER:
        return {}, text

    for index in range(1, len(lines)):
        if lines[index].rstrip() == DELIMITER:
            block = ''.join(lines[1:index])
            body = ''.join(lines[index + 1:])
            break
    else:
        return {}, text

    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as e:
        logger.warning(f"Ignoring unparseable frontmatter: {e}")
        return {}, body

    if not isinstance(data, dict):
        return {}, body
    return data, body


def join_frontmatter(metadata: Dict[str, Any], body: str) -> str:
    """Render metadata as a YAML block followed by the body."""
    if not metadata:
        return body
    block = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True)
    return f"{DELIMITER}\n{block}{DELIMITER}\n\n{body}"

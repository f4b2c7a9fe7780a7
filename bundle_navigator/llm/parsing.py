"""
LLM Output Parsing
==================

Tolerant JSON parsing and log-safe previews of model output.
"""

import hashlib
import json
from typing import Dict, Optional, Tuple


def parse_json_robust(content: str) -> Tuple[Optional[Dict], bool, str]:
    """
    Parse JSON content robustly, handling common LLM output issues.

    Handles:
    - Empty content
    - Markdown code blocks (```json...```)
    - Prefix text before JSON
    - Multiple JSON objects (takes largest)

    Returns:
        Tuple of (parsed_dict, success, error_message)
    """
    if not content:
        return None, False, "Empty content"

    content = content.strip()

    if "```json" in content:
        start = content.find("```json") + 7
        end = content.find("```", start)
        if end > start:
            content = content[start:end].strip()
    elif "```" in content:
        start = content.find("```") + 3
        end = content.find("```", start)
        if end > start:
            content = content[start:end].strip()

    try:
        data = json.loads(content)
        if isinstance(data, dict):
            return data, True, ""
    except json.JSONDecodeError:
        pass

    # Largest balanced {...} block
    blocks = []
    depth = 0
    start_idx = None
    for i, char in enumerate(content):
        if char == "{":
            if depth == 0:
                start_idx = i
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0 and start_idx is not None:
                blocks.append(content[start_idx:i + 1])
                start_idx = None

    for block in sorted(blocks, key=len, reverse=True):
        try:
            data = json.loads(block)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data, True, ""

    return None, False, "No JSON object found"


def safe_log_content(content: str, max_chars: int = 120) -> str:
    """Length, hash and short preview of content for logs"""
    if not content:
        return "(empty)"

    content_hash = hashlib.sha256(content.encode()).hexdigest()[:12]
    preview = content[:max_chars].replace("\n", " ")

    return f"len={len(content)} hash={content_hash} preview='{preview}...'"

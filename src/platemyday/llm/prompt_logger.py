"""
PlateMyDay - Prompt Logger.

Writes each generation call (prompts, parsed response or error) to a
markdown file for debugging. Enabled via PLATEMYDAY_LOG_PROMPTS=1.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any

LOG_PROMPTS = os.getenv("PLATEMYDAY_LOG_PROMPTS", "0") == "1"
LOG_DIR = Path("prompt_logs")

_session_id: str | None = None
_call_counter: int = 0


def enable_prompt_logging(enabled: bool = True) -> None:
    """Enable or disable prompt logging."""
    global LOG_PROMPTS
    LOG_PROMPTS = enabled


def is_enabled() -> bool:
    return LOG_PROMPTS


def _get_session_dir() -> Path:
    global _session_id
    if _session_id is None:
        _session_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    session_dir = LOG_DIR / _session_id
    session_dir.mkdir(parents=True, exist_ok=True)
    return session_dir


def log_prompt(
    *,
    task: str,
    model: str,
    system_prompt: str,
    user_prompt: str,
    response_model: str,
    response: Any = None,
    error: str | None = None,
    streamed: bool = False,
) -> Path | None:
    """
    Log one generation call.

    Returns:
        Path to the log file, or None if logging is disabled
    """
    if not LOG_PROMPTS:
        return None

    global _call_counter
    _call_counter += 1

    filepath = _get_session_dir() / f"{_call_counter:02d}_{task}.md"

    content = f"""# Generation: {task}

**Time:** {datetime.now().isoformat()}
**Model:** {model}
**Response Model:** {response_model}
**Streamed:** {streamed}

## System Prompt

```
{system_prompt}
```

## User Prompt

```
{user_prompt}
```

## Response

"""

    if error:
        content += f"**ERROR:** {error}\n"
    elif response is not None:
        if hasattr(response, "model_dump"):
            response = response.model_dump(by_alias=True, mode="json")
        content += f"```json\n{json.dumps(response, indent=2, default=str)}\n```\n"
    else:
        content += "(No response)\n"

    filepath.write_text(content, encoding="utf-8")
    return filepath


def reset_session() -> None:
    """Start a new log session directory on the next call."""
    global _session_id, _call_counter
    _session_id = None
    _call_counter = 0

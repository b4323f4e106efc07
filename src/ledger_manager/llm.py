"""LLM suggestion provider interface and Anthropic implementation.

Defines the SuggestionProvider protocol for proposing an account, a cleaned
narration and tags for imported bank rows, plus two implementations:
- AnthropicAdapter: sends batches to the Anthropic Messages API via httpx.
- NullAdapter: no-op adapter that always returns an empty list (for --no-llm mode).

This module depends only on the standard library and httpx. It has no internal
imports from ledger_manager -- the pipeline passes plain dicts, not
StagedRow objects, to keep the boundary clean.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"


class SuggestionProvider(Protocol):
    """Protocol for LLM-based suggestions on imported rows.

    Implementations receive a batch of row dicts and the accounts already
    used in the ledger, and return one suggestion dict per row they could
    handle. On any failure, implementations must return an empty list
    rather than raising.
    """

    def suggest_batch(
        self,
        rows: list[dict],
        accounts: list[str],
    ) -> list[dict]:
        """Ask the LLM for suggestions on a batch of rows.

        Args:
            rows: List of dicts, each with keys:
                fingerprint, narration, amount, date.
            accounts: Known ledger account names, in any order.

        Returns:
            List of dicts, each with keys: fingerprint, account, narration,
            tags, confidence. Empty list on any failure.
        """
        ...


def _build_prompt(rows: list[dict], accounts: list[str]) -> str:
    """Construct the suggestion prompt.

    The prompt contains the known accounts, the rows to categorize, and
    instructions for the expected JSON response format.
    """
    account_text = "\n".join(f"- {account}" for account in accounts) or "(none yet)"

    row_lines: list[str] = []
    for row in rows:
        row_lines.append(
            f"{row['fingerprint']} | {row['narration']} | {row['amount']} | {row['date']}"
        )
    row_text = "\n".join(row_lines)

    return (
        "You are an expert accountant categorizing bank transactions for a\n"
        "plain-text ledger. For each transaction below, choose the ledger account\n"
        "the money went to (or came from), a short readable narration, and tags.\n"
        "Negative amounts are money leaving the bank account.\n"
        "\n"
        "## Known Accounts\n"
        f"{account_text}\n"
        "\n"
        "## Transactions (fingerprint | description | amount | date)\n"
        f"{row_text}\n"
        "\n"
        "## Response Format\n"
        "Return a JSON array. Each element:\n"
        '{"fingerprint": "...", "account": "Expenses:...", "narration": "...", '
        '"tags": ["..."], "confidence": 0.0}\n'
        "\n"
        "Prefer known accounts. Use colon-separated account names.\n"
        "Tags are single lowercase words without '#'.\n"
        "Confidence is a number between 0 and 1."
    )


def _parse_response(text: str) -> list[dict]:
    """Extract and parse the JSON array from the LLM response text.

    The LLM may wrap the JSON in markdown code fences or include
    explanatory text. This function finds the first '[' and last ']'
    to extract the array.

    Args:
        text: Raw text from the LLM response.

    Returns:
        Parsed list of dicts, or empty list if parsing fails.
    """
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end == -1 or end <= start:
        logger.warning("LLM response does not contain a JSON array")
        return []

    json_str = text[start : end + 1]
    try:
        result = json.loads(json_str)
    except json.JSONDecodeError as exc:
        logger.warning("Failed to parse JSON from LLM response: %s", exc)
        return []

    if not isinstance(result, list):
        logger.warning("LLM response JSON is not a list")
        return []

    validated: list[dict] = []
    for item in result:
        if not isinstance(item, dict):
            logger.warning("Skipping non-dict item in LLM response: %s", item)
            continue
        if "fingerprint" not in item or "account" not in item:
            logger.warning("Skipping item missing required keys: %s", item)
            continue

        tags = item.get("tags") or []
        if not isinstance(tags, list):
            tags = [tags]
        try:
            confidence = min(max(float(item.get("confidence", 0)), 0.0), 1.0)
        except (TypeError, ValueError):
            confidence = 0.0

        validated.append(
            {
                "fingerprint": str(item["fingerprint"]),
                "account": str(item["account"]),
                "narration": str(item.get("narration") or ""),
                "tags": [str(t).lstrip("#") for t in tags if str(t).strip()],
                "confidence": confidence,
            }
        )

    return validated


class AnthropicAdapter:
    """Suggestion provider that calls the Anthropic Messages API via httpx.

    Reads the API key from the environment variable specified in config
    (``api_key_env``). Constructs a single prompt containing all rows and
    the known accounts, sends one HTTP POST, and parses the structured JSON
    response.

    On any failure (missing API key, network error, auth error, rate
    limit, unparseable response), returns an empty list. The import
    pipeline treats this as "LLM unavailable" and leaves rows pending.

    Args:
        model: The Anthropic model identifier, e.g. "claude-sonnet-4-20250514".
        api_key_env: Name of the environment variable containing the API key.
        max_tokens: Maximum tokens in the LLM response. Default: 4096.
        timeout: HTTP request timeout in seconds. Default: 60.
    """

    def __init__(
        self,
        model: str,
        api_key_env: str,
        max_tokens: int = 4096,
        timeout: float = 60.0,
    ) -> None:
        self.model = model
        self.api_key_env = api_key_env
        self.max_tokens = max_tokens
        self.timeout = timeout

    def suggest_batch(
        self,
        rows: list[dict],
        accounts: list[str],
    ) -> list[dict]:
        """Send a batch of rows to Anthropic for suggestions.

        Returns:
            List of suggestion dicts. Empty list on any failure.
        """
        if not rows:
            return []

        api_key = os.environ.get(self.api_key_env, "")
        if not api_key:
            logger.warning(
                "LLM API key not found in environment variable '%s'",
                self.api_key_env,
            )
            return []

        request_body = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": _build_prompt(rows, accounts),
                }
            ],
        }

        headers = {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }

        try:
            response = httpx.post(
                ANTHROPIC_API_URL,
                json=request_body,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.TimeoutException:
            logger.warning("LLM request timed out")
            return []
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "LLM API returned HTTP %d: %s",
                exc.response.status_code,
                exc.response.text[:200],
            )
            return []
        except httpx.HTTPError as exc:
            logger.warning("LLM request failed: %s", exc)
            return []

        try:
            body = response.json()
            text_parts = [
                block["text"]
                for block in body.get("content", [])
                if block.get("type") == "text"
            ]
            response_text = "\n".join(text_parts)
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Failed to extract text from LLM response: %s", exc)
            return []

        if not response_text:
            logger.warning("LLM response contained no text content")
            return []

        return _parse_response(response_text)


class NullAdapter:
    """No-op suggestion provider for --no-llm mode.

    Always returns an empty list. Used when suggestions are disabled via
    the --no-llm flag or when llm_provider is set to "none" in config.
    """

    def suggest_batch(
        self,
        rows: list[dict],
        accounts: list[str],
    ) -> list[dict]:
        return []

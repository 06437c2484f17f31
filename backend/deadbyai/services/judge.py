"""Judging oracle: decides who survived a scenario.

An oracle is any callable ``judge(prompt, entries)`` returning a mapping of
player id to ``Verdict``. ``entries`` holds one dict per submitted story::

    {'playerId': ..., 'playerName': ..., 'story': ...}

Players without a story never reach the oracle; the round scoring treats
them as forfeits.
"""

import json
import logging
from typing import Dict, List, NamedTuple

from openai import OpenAI

from deadbyai.errors import JudgeError

logger = logging.getLogger(__name__)


class Verdict(NamedTuple):
    survived: bool
    reasoning: str


SYSTEM_PROMPT = """You are the judge of a survival storytelling game called Dead by AI.
Players are given a deadly scenario and each writes how they survive it.
Judge every story on its own merits: clever, plausible and entertaining
plans survive; lazy, impossible or self-contradicting ones die. Be
dramatic and funny in your reasoning, two or three sentences per player.

Reply with JSON only, in exactly this shape:
{"results": [{"playerId": "<id>", "survived": true, "reasoning": "<text>"}]}
Include one entry for every player id you are given."""


def build_user_message(prompt: str, entries: List[dict]) -> str:
    lines = [f"Scenario: {prompt}", "", "Stories:"]
    for entry in entries:
        lines.append(f"- playerId: {entry['playerId']}")
        lines.append(f"  name: {entry['playerName']}")
        lines.append(f"  story: {entry['story']}")
    return "\n".join(lines)


def parse_verdicts(content: str, entries: List[dict]) -> Dict[str, Verdict]:
    """Parse the judge's JSON reply, requiring a verdict for every entry."""
    try:
        data = json.loads(content)
    except (TypeError, ValueError):
        raise JudgeError('The judge returned an unreadable verdict')
    rows = data.get('results') if isinstance(data, dict) else None
    if not isinstance(rows, list):
        raise JudgeError('The judge returned an unreadable verdict')

    verdicts: Dict[str, Verdict] = {}
    for row in rows:
        if not isinstance(row, dict) or not isinstance(row.get('survived'), bool):
            continue
        player_id = str(row.get('playerId', ''))
        verdicts[player_id] = Verdict(row['survived'], str(row.get('reasoning') or '').strip())

    missing = [e['playerId'] for e in entries if e['playerId'] not in verdicts]
    if missing:
        raise JudgeError('The judge did not rule on every story')
    return {e['playerId']: verdicts[e['playerId']] for e in entries}


class OpenAIJudge:
    """Oracle backed by an OpenAI-compatible chat completion endpoint."""

    def __init__(self, api_key=None, model='gpt-4o-mini', base_url=None, timeout=30.0, client=None):
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> OpenAI:
        # Built on first use so the server starts without an API key configured
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, base_url=self.base_url,
                                  timeout=self.timeout, max_retries=0)
        return self._client

    def __call__(self, prompt: str, entries: List[dict]) -> Dict[str, Verdict]:
        if not entries:
            return {}
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {'role': 'system', 'content': SYSTEM_PROMPT},
                {'role': 'user', 'content': build_user_message(prompt, entries)},
            ],
            response_format={'type': 'json_object'},
            temperature=0.8,
        )
        content = (response.choices[0].message.content or '').strip()
        logger.debug(f"[judge-reply] model={self.model} chars={len(content)}")
        return parse_verdicts(content, entries)


def judge_from_config(config) -> OpenAIJudge:
    return OpenAIJudge(
        api_key=config.get('OPENAI_API_KEY'),
        model=config.get('JUDGE_MODEL', 'gpt-4o-mini'),
        base_url=config.get('OPENAI_BASE_URL'),
        timeout=float(config.get('JUDGE_TIMEOUT_SEC', 30)),
    )

# Folder: qport-core/agent/backend.py
#
# The inference transport, behind a two-method contract:
#
#   generate(InferenceRequest) -> InferenceResponse
#   ping()                     -> None, raises if unreachable
#
# The classifier only ever talks to this contract, so tests swap in a
# fake and the vendor stays replaceable. AnthropicBackend is the
# production implementation; grounding uses the web search server tool
# and citations come back from its tool-result blocks.
#
# Failures are NOT translated here - SDK exceptions carry `status_code`
# and the classifier reads that directly (see agent/errors.py).

import json
import logging
from typing import Optional, List
from pydantic import BaseModel, Field
import anthropic
import config

logger = logging.getLogger(__name__)


class InferenceRequest(BaseModel):
    system_instruction: str
    contents: str
    response_schema: dict
    use_grounding: bool = False


class Citation(BaseModel):
    title: Optional[str] = None
    uri: str


class InferenceResponse(BaseModel):
    text: str
    citations: List[Citation] = Field(default_factory=list)


class AnthropicBackend:
    """
    Messages API backend.

    The schema is declared in the system prompt and the model is told to
    answer with JSON only; the classifier validates what comes back.
    The SDK client is created on first use so a missing API key shows up
    as a failed call (and a fallback incident), not a crash at boot.
    """

    def __init__(self, api_key: str = None, model: str = None,
                 max_tokens: int = None, client=None):
        self.api_key = api_key or config.ANTHROPIC_API_KEY
        self.model = model or config.CLASSIFIER_MODEL
        self.max_tokens = max_tokens or config.CLASSIFIER_MAX_TOKENS
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = anthropic.Anthropic(api_key=self.api_key)
        return self._client

    def generate(self, request: InferenceRequest) -> InferenceResponse:
        system = (
            f"{request.system_instruction}\n\n"
            f"Respond with a single JSON object matching this JSON schema, "
            f"no text outside the JSON:\n"
            f"{json.dumps(request.response_schema, indent=2)}"
        )
        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": system,
            "messages": [{"role": "user", "content": request.contents}],
        }
        if request.use_grounding:
            kwargs["tools"] = [{
                "type": "web_search_20250305",
                "name": "web_search",
                "max_uses": config.WEB_SEARCH_MAX_USES,
            }]

        response = self.client.messages.create(**kwargs)
        return InferenceResponse(
            text=_joined_text(response.content),
            citations=_web_citations(response.content),
        )

    def complete(self, prompt: str, max_tokens: int = None,
                 model: str = None) -> str:
        """Free-form text completion (tactical analysis)."""
        response = self.client.messages.create(
            model=model or config.ANALYSIS_MODEL,
            max_tokens=max_tokens or config.ANALYSIS_MAX_TOKENS,
            messages=[{"role": "user", "content": prompt}]
        )
        return _joined_text(response.content)

    def ping(self):
        """Smallest possible round trip. Raises on any failure."""
        self.client.messages.create(
            model=self.model,
            max_tokens=1,
            messages=[{"role": "user", "content": "ping"}]
        )


def _joined_text(blocks) -> str:
    parts = [
        block.text for block in blocks
        if getattr(block, "type", None) == "text"
    ]
    return "".join(parts).strip()


def _web_citations(blocks) -> List[Citation]:
    """Search results in the order the model saw them, deduplicated by URL."""
    citations = []
    seen = set()
    for block in blocks:
        if getattr(block, "type", None) != "web_search_tool_result":
            continue
        results = getattr(block, "content", None)
        if not isinstance(results, list):
            # error payload instead of results
            logger.warning(f"Web search returned no results: {results}")
            continue
        for result in results:
            url = getattr(result, "url", None)
            if not url or url in seen:
                continue
            seen.add(url)
            citations.append(Citation(title=getattr(result, "title", None), uri=url))
    return citations

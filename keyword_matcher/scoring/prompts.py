"""Relevance scoring prompts."""

from langchain_core.prompts import ChatPromptTemplate

SYSTEM_PROMPT = """You are a digital marketing expert specialized in matching advertiser keywords \
with Meta (Facebook/Instagram) ad targeting interests.
You analyse how relevant each targeting suggestion is for an original keyword and give each one \
a match score from 1 to 100."""

USER_PROMPT = """Evaluate the relevance between the original keyword "{keyword}" and the following \
Meta ad targeting suggestions:
{candidates}

For each suggestion, consider:
1. Semantic relevance
2. Marketing intent match
3. Cultural and linguistic relevance

Give each suggestion an integer score from 1 to 100, where 100 is a perfect match, \
with a short reason for the score.
Also identify the best overall match and its score.

Reply with JSON only, using this structure:
{{
  "scores": [
    {{"id": "suggestion id", "suggestion": "suggestion text", "score": 1-100, "reason": "why"}}
  ],
  "bestMatch": {{"id": "suggestion id", "suggestion": "best suggestion text", "score": 1-100}}
}}"""

SCORING_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", SYSTEM_PROMPT),
        ("user", USER_PROMPT),
    ]
)


def format_candidates(candidates) -> str:
    return "\n".join(
        f'{position}. [id={candidate.id}] "{candidate.value}"'
        for position, candidate in enumerate(candidates, start=1)
    )

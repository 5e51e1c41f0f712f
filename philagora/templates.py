"""Content templates: structural instructions layered on top of a persona's
instruction set at generation time, plus the output shape each one expects.

Templates are configuration. They are frozen and never change at runtime.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from philagora.errors import ConfigurationError, StructuredOutputError

LENGTH_PLACEHOLDER = "{LENGTH_GUIDANCE}"


class TargetLength(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


STANDARD_LENGTHS: dict[TargetLength, str] = {
    TargetLength.SHORT: "Length: 40-80 words. Be terse. One paragraph max. One sharp observation.",
    TargetLength.MEDIUM: "Length: 80-150 words. A developed reaction with nuance.",
    TargetLength.LONG: "Length: 150-250 words. A deeper analysis with more nuance. Multiple paragraphs allowed.",
}

REFLECTION_LENGTHS: dict[TargetLength, str] = {
    TargetLength.SHORT: "Length: 30-60 words. Be terse. One paragraph max. A single aphorism.",
    TargetLength.MEDIUM: "Length: 60-120 words. A developed reflection.",
    TargetLength.LONG: "Length: 120-200 words. An extended meditation. Multiple paragraphs allowed.",
}


@dataclass(frozen=True)
class ContentTemplate:
    key: str
    instructions: str
    string_fields: tuple[str, ...] = ()
    list_fields: tuple[str, ...] = ()
    is_reply: bool = False
    is_synthesis: bool = False
    lengths: tuple[tuple[TargetLength, str], ...] = ()

    @property
    def uses_length(self) -> bool:
        return LENGTH_PLACEHOLDER in self.instructions


_JSON_ONLY = "RESPOND WITH VALID JSON ONLY - no markdown, no code fences, no extra text:"

_STANCES = "challenges | defends | reframes | questions | warns | observes"

_TEMPLATES = [
    ContentTemplate(
        key="news_reaction",
        instructions=f"""
TASK: React to the following news article through your philosophical framework.

REQUIREMENTS:
- {LENGTH_PLACEHOLDER}
- Write in your authentic philosophical voice
- Engage directly with the substance of the article
- The citation details (article title, source, URL) are stored separately; do NOT include them in your content

{_JSON_ONLY}
{{
  "content": "Your reaction to the article",
  "thesis": "One punchy sentence summarizing your position",
  "stance": "{_STANCES}",
  "tag": "Political Commentary | Ethical Analysis | Metaphysical Reflection | Existential Reflection | Practical Wisdom"
}}
""".strip(),
        string_fields=("content", "thesis", "stance", "tag"),
        lengths=tuple(STANDARD_LENGTHS.items()),
    ),
    ContentTemplate(
        key="timeless_reflection",
        instructions=f"""
TASK: Write a timeless observation about human nature or modern life. This is NOT tied to any specific news event. It is a standalone philosophical reflection.

REQUIREMENTS:
- {LENGTH_PLACEHOLDER}
- Direct address to the reader; use "you"
- Write in your most characteristic voice
- Should feel like something that could be read in any era

{_JSON_ONLY}
{{
  "content": "Your timeless reflection",
  "thesis": "One punchy sentence capturing the core insight",
  "stance": "{_STANCES}",
  "tag": "Timeless Wisdom | Practical Wisdom"
}}
""".strip(),
        string_fields=("content", "thesis", "stance", "tag"),
        lengths=tuple(REFLECTION_LENGTHS.items()),
    ),
    ContentTemplate(
        key="cross_philosopher_reply",
        instructions=f"""
TASK: Respond to another philosopher's post. Engage with their specific claims: agree, disagree, complicate, or reframe.

REQUIREMENTS:
- {LENGTH_PLACEHOLDER}
- Start with @PhilosopherName (the name of the philosopher you are replying to)
- Engage with their SPECIFIC claims, not just your own general position
- Show genuine philosophical engagement. This is a dialogue, not parallel monologues

{_JSON_ONLY}
{{
  "content": "Your reply starting with @PhilosopherName",
  "thesis": "One sentence summarizing your response",
  "stance": "{_STANCES}",
  "tag": "Cross-Philosopher Reply"
}}
""".strip(),
        string_fields=("content", "thesis", "stance", "tag"),
        is_reply=True,
        lengths=tuple(STANDARD_LENGTHS.items()),
    ),
    ContentTemplate(
        key="debate_opening",
        instructions=f"""
TASK: You are participating in a structured philosophical debate on Philagora. The debate topic and trigger article are provided below. Present your opening position: what does your philosophical framework reveal about this topic?

REQUIREMENTS:
- Length: 150-250 words. Be substantive; this is your opening statement.
- You may use paragraph breaks for structure.
- Reference relevant aspects of the trigger article
- Set up your position for cross-examination and rebuttal

{_JSON_ONLY}
{{
  "content": "Your opening statement (150-250 words)"
}}
""".strip(),
        string_fields=("content",),
    ),
    ContentTemplate(
        key="debate_rebuttal",
        instructions=f"""
TASK: You are responding to another philosopher's position in a structured debate. Their argument is provided below. Engage with their SPECIFIC claims.

REQUIREMENTS:
- Start with @PhilosopherName
- Length: 100-200 words
- Don't just restate your own position; show where they're wrong and why
- Identify weak points in their argument and press on them
- You may concede points where they are strong, then pivot

{_JSON_ONLY}
{{
  "content": "Your rebuttal starting with @PhilosopherName (100-200 words)"
}}
""".strip(),
        string_fields=("content",),
        is_reply=True,
    ),
    ContentTemplate(
        key="agora_response",
        instructions=f"""
TASK: A user has asked a personal question on Philagora's Agora. Respond through your philosophical framework, but stay grounded in their specific situation. Be genuinely helpful, not just theoretical.

REQUIREMENTS:
- You may write 1-2 response posts (use two only if the question deserves a nuanced multi-part answer)
- Length: 100-200 words per post
- Apply your philosophical framework but stay grounded in their SPECIFIC situation
- Speak directly to the person asking
- First post: address their core concern; second post (if included): add nuance or a practical takeaway

{_JSON_ONLY}
{{
  "posts": ["First response (100-200 words)", "Optional second response (100-200 words)"]
}}
""".strip(),
        list_fields=("posts",),
    ),
    ContentTemplate(
        key="debate_synthesis",
        instructions=f"""
TASK: This is NOT a philosopher voice. This is the editorial voice of Philagora. You have read all the philosopher responses below. Your job is to identify:
1. tensions: where do these thinkers fundamentally disagree, and why?
2. agreements: what do they converge on, despite different frameworks?
3. questionsForReflection: the questions the debate leaves open

REQUIREMENTS:
- Be precise. Name the philosophers. Don't just say "some disagree"; say "Russell defends X while Plato insists Y."
- Also provide a synthesisSummary with three fields:
  - agree: one sentence on what they share
  - diverge: one sentence on the key fault line
  - unresolvedQuestion: the question the debate leaves open
- Length: Each tension/agreement/question should be 1-2 sentences.

{_JSON_ONLY}
{{
  "tensions": ["Tension 1...", "Tension 2..."],
  "agreements": ["Agreement 1..."],
  "questionsForReflection": ["Question 1...", "Question 2..."],
  "synthesisSummary": {{
    "agree": "One sentence on what they share...",
    "diverge": "One sentence on the key fault line...",
    "unresolvedQuestion": "The question the debate leaves open..."
  }}
}}
""".strip(),
        list_fields=("tensions", "agreements", "questionsForReflection"),
        is_synthesis=True,
    ),
    ContentTemplate(
        key="agora_synthesis",
        instructions=f"""
TASK: This is NOT a philosopher voice. This is the editorial voice of Philagora. You have read all the philosopher responses to a user's question below. Your job is to identify:
1. tensions: where do these thinkers offer conflicting advice or framings?
2. agreements: what do they converge on, despite different frameworks?
3. practicalTakeaways: concrete advice the questioner can actually act on

REQUIREMENTS:
- Be precise. Name the philosophers. Don't just say "some disagree"; say "Russell advises X while Plato recommends Y."
- Distill 2-4 practical takeaways the questioner can actually use
- Length: Each tension/agreement/takeaway should be 1-2 sentences.

{_JSON_ONLY}
{{
  "tensions": ["Tension 1...", "Tension 2..."],
  "agreements": ["Agreement 1..."],
  "practicalTakeaways": ["Takeaway 1...", "Takeaway 2..."]
}}
""".strip(),
        list_fields=("tensions", "agreements", "practicalTakeaways"),
        is_synthesis=True,
    ),
]

TEMPLATES: dict[str, ContentTemplate] = {t.key: t for t in _TEMPLATES}


def get_template(key: str) -> ContentTemplate:
    try:
        return TEMPLATES[key]
    except KeyError:
        raise ConfigurationError(f"Unknown content type: {key}") from None


def get_length_guidance(template: ContentTemplate, target_length: TargetLength | None = None) -> str:
    """Length guidance for a template. Templates without their own map use standard medium."""
    length = target_length or TargetLength.MEDIUM
    lengths = dict(template.lengths)
    if not lengths:
        return STANDARD_LENGTHS[TargetLength.MEDIUM]
    return lengths[length]


def resolve_content_type_key(stored_type: str, ui_label: str | None = None) -> str:
    """Map a stored content type (and optional UI label) to a template key.

    "post" covers both news reactions and cross replies; the label disambiguates.
    """
    if stored_type == "post":
        if ui_label == "Cross-Philosopher Reply":
            return "cross_philosopher_reply"
        return "news_reaction"
    if stored_type == "reflection":
        return "timeless_reflection"
    if stored_type in TEMPLATES:
        return stored_type
    return "news_reaction"


def validate_output(template: ContentTemplate, data: dict[str, Any], raw_text: str = "") -> dict[str, Any]:
    """Check a parsed object against the template's output shape.

    String fields must be non-empty strings; list fields must be lists of
    strings (the first list field must be non-empty). Returns the object with
    list entries stripped of blanks.
    """
    for name in template.string_fields:
        value = data.get(name)
        if not isinstance(value, str) or not value.strip():
            raise StructuredOutputError(f"Field '{name}' missing or not a string", raw_text)

    cleaned = dict(data)
    for index, name in enumerate(template.list_fields):
        value = data.get(name, [])
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise StructuredOutputError(f"Field '{name}' is not a list of strings", raw_text)
        items = [v for v in value if v.strip()]
        if index == 0 and not items:
            raise StructuredOutputError(f"Field '{name}' is empty", raw_text)
        cleaned[name] = items
    return cleaned

"""Prompt templates for the editorial stages."""

SELECTION_PROMPT = """You are the editorial director of a newspaper that reports on prediction markets.
Choose the stories for today's front page from the numbered candidates below.

Rules:
- Pick between {min_stories} and {target_stories} stories.
- Exactly one story gets layout "LEAD": the single most important story.
- Use "FEATURE" for up to six strong secondary stories and "BRIEF" for the rest.
- Prefer variety across categories. Avoid more than two sports stories.

Candidates:
{candidates}

Respond with JSON only:
{{"selections": [{{"index": 0, "layout": "LEAD", "why": "one sentence"}}], "reasoning": "two sentences on the page as a whole"}}
"""

HEADLINE_PROMPT = """Write front-page headlines for these prediction-market stories.

Style: declarative, present tense, at most twelve words, no question marks.
Never start with or contain the word "will". State what the market believes.

Stories:
{stories}

Respond with JSON only, keyed by the story number:
{{"0": "HEADLINE", "1": "HEADLINE"}}
"""

ARTICLE_PROMPT = """Write the article text for these prediction-market stories.

Length by layout: BRIEF 2-3 sentences, FEATURE 3 short paragraphs, LEAD 4-5 paragraphs.
Quote the odds and the trading volume. Do not invent facts beyond the market data.
{note_instruction}
Stories:
{stories}

Respond with JSON only, keyed by the story number:
{{"0": "article text", "1": "article text"{note_field}}}
"""

ARTICLE_NOTE_INSTRUCTION = (
    'Also include a "note" field: one aphorism from the editor about the day\'s markets.\n'
)

REVIEW_PROMPT = """You are the chief editor. Tighten these drafts: fix errors, cut filler,
keep the facts and the layout length. Return a draft unchanged if it needs no work.

Drafts:
{stories}

Respond with JSON only, keyed by story id:
{{"reviewed": {{"<story id>": "final text"}}}}
"""

ANNOTATION_PROMPT = """For each featured story, argue the contrarian side of the market consensus.

Stories:
{stories}

Respond with JSON only, keyed by the story number:
{{"takes": {{"0": {{"bearCase": "...", "keyRisk": "...", "whoDisagrees": "...", "confidence": "HIGH|MEDIUM|LOW"}}}}}}
"""

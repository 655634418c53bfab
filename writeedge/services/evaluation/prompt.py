"""Prompt construction for AI writing evaluations."""

from typing import Iterable, Optional, Tuple

from writeedge.core.config import settings


EVALUATION_INSTRUCTIONS = """
You are an experienced professional-writing instructor. Evaluate the student's
writing below for grammar, content quality and creativity.

OUTPUT FORMAT (STRICT JSON, NO CODE FENCES, NO COMMENTARY):
{
  "reviewScore": integer 0-100 (overall quality),
  "grammarScore": integer 0-10,
  "contentScore": integer 0-10,
  "creativityScore": integer 0-10,
  "summaryFeedback": string (2-4 sentences),
  "grammarIssues": [string] (each item: the original text, the correction and a short explanation; empty list if there are no errors),
  "suggestions": [string] (3-5 concrete improvement suggestions),
  "finalRemarks": string (1-2 encouraging sentences)
}
"""


def build_answers_text(pairs: Iterable[Tuple[str, Optional[str]]], max_chars: int = settings.MAX_ANSWER_CHARS) -> str:
    """Concatenate (question, answer) pairs into one block, `Q{n}: question` then the answer."""
    blocks = []
    for idx, (question, answer) in enumerate(pairs, start=1):
        answer = (answer or "").strip()
        # Clamp extremely long answers to keep prompt size predictable
        if len(answer) > max_chars:
            answer = answer[:max_chars]
        blocks.append(f"Q{idx}: {(question or '').strip()}\n{answer}")
    return "\n\n".join(blocks).strip()


def build_evaluation_prompt(writing: str, *, context: Optional[str] = None) -> str:
    prompt = EVALUATION_INSTRUCTIONS
    if context:
        prompt += f"\nContext: {context}\n"
    prompt += f"\nStudent writing:\n{writing}"
    return prompt

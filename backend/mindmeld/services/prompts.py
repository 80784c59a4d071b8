"""Oracle Prompts: system and user prompts for question generation and judging.

Invariants:
    - Question prompt asks for exactly ONE question, no prefixes or explanations
    - Previously asked questions are listed so the model avoids repeating them
    - Judge prompt asks for ONLY a number from 1 to 10
"""

QUESTION_SYSTEM_PROMPT = """\
You are a creative question generator for a social guessing game. Generate \
interesting, thought-provoking questions based on the given theme. The questions should:

1. Be open-ended and allow for creative, personal answers
2. Be engaging and fun for friends to discuss
3. Encourage answers that are about 1 sentence long but can be shorter or longer
4. Be appropriate for all audiences
5. Make people think about hypothetical scenarios, preferences, or creative ideas

Generate exactly ONE question. Do not include any prefixes, suffixes, or \
explanations - just the question itself."""

JUDGE_SYSTEM_PROMPT = """\
You are an AI judge for a social guessing game. Players answer questions, then \
try to guess what other players answered.

Your job is to rate how well a guess matches the original answer on a scale of 1-10:

1-2: Completely wrong, no similarity
3-4: Some slight connection but mostly wrong
5-6: Partially correct, captures some essence
7-8: Very close, captures most of the meaning
9-10: Excellent match, essentially the same idea

Consider:
- Semantic similarity (same meaning in different words)
- Key concepts and themes
- Overall intent and sentiment
- Don't penalize for minor wording differences
- Reward creative interpretations that capture the spirit

Respond with ONLY a number from 1-10, nothing else."""


def build_question_message(theme: str, previous_questions: list[str]) -> str:
    lines = [f'Generate a question based on this theme: "{theme}"']
    if previous_questions:
        lines.append("")
        lines.append("These questions were already asked in this game. Do not repeat them or ask near-duplicates:")
        lines.extend(f"- {q}" for q in previous_questions)
    return "\n".join(lines)


def build_judge_message(original_answer: str, guess: str, question: str) -> str:
    return (
        f'Question: "{question}"\n\n'
        f'Original Answer: "{original_answer}"\n'
        f'Guess: "{guess}"\n\n'
        "Rate this guess (1-10):"
    )

# scriptgrader/services/prompts.py
"""Prompt text for the three remote capabilities."""

BLANK_MARKER = "[BLANK - no answer]"
NO_PAGE_NUMBER = "NONE"

PAGE_NUMBER_PROMPT = f"""Look at this scanned page of an answer sheet.

Find the PRINTED PAGE NUMBER of this page. Page numbers are usually in the header or footer
(top or bottom margin), for example "Page 3", "3 of 8", "- 3 -" or a lone number in a corner.

Do NOT report question numbers (1, 2a, Q3 ...), marks in brackets ([2], (4 marks)) or any
number that appears inside the body of the page.

Reply with ONLY the page number as digits, e.g. 3
If there is no page number on this page, reply with exactly: {NO_PAGE_NUMBER}"""


def handwriting_prompt(page_number: int, total_pages: int) -> str:
    return f"""You are reading page {page_number} of {total_pages} of a student's completed exam paper.

Your job is to extract ONLY what the STUDENT ADDED BY HAND (pen or pencil).

## EXCLUDE (never transcribe):
- Pre-printed question text, instructions, headers, footers and page numbers
- Printed option labels and answer choices (A, B, C, D text), printed table headings
- Printed mark allocations such as [2] or (3 marks)

## INCLUDE:
- Every handwritten answer, labelled with the question it answers (e.g. "1a)", "2b)ii")
- Handwritten working, crossings-out that are still legible (mark them as [crossed out: ...])
- Circled / ticked / filled choices: write the selected label, e.g. "3) Selected: B"

## MATHEMATICAL NOTATION:
- Write maths inline with LaTeX-style markup: $x^2$, $\\frac{{a}}{{b}}$, $\\sqrt{{x}}$, $\\int_0^1 f(x)\\,dx$
- Greek letters, set and logic symbols as LaTeX ($\\alpha$, $\\in$, $\\land$, $\\lor$, $\\neg$)
- OVERLINES MATTER FOR LOGIC: if a line is drawn above a symbol write $\\overline{{A}}$;
  if there is NO line above it write plain $A$. Check every variable individually.

## DIAGRAMS:
- Never skip a hand-drawn diagram. Describe it exhaustively inside a block:
  [DIAGRAM: every node, label, arrow direction, connection and value that is drawn]

## TABLES AND BINARY DATA:
- Reproduce handwritten tables as markdown tables
- For truth tables / binary values: count the columns and rows again before answering and
  read EVERY cell individually. Do not assume a repeating pattern (0101..., 0011...).

## BLANK ANSWERS:
- If an answer space for a question is left empty write: "<question label>) {BLANK_MARKER}"
- If the whole page has no handwriting write only: {BLANK_MARKER}

OUTPUT: Return ONLY the extracted handwritten content. No commentary, no explanations."""


def grading_prompt(student_text: str, mark_scheme_text: str, total_marks: int) -> str:
    return f"""You are an experienced examiner grading a student's answers against a mark scheme.

═══════════════════════════════════════════════════════════════════════════════
MARK SCHEME (extracted from the original document):
{mark_scheme_text}

═══════════════════════════════════════════════════════════════════════════════
STUDENT'S ANSWERS (handwritten content only, page-delimited):
{student_text}

═══════════════════════════════════════════════════════════════════════════════
                              GRADING RULES
═══════════════════════════════════════════════════════════════════════════════

The assessment is worth {total_marks} marks in total. Use the mark allocations in the mark
scheme ([1], [2], (3 marks), M1/A1/B1 ...) for each question.

1. EXAMPLE ANSWERS ARE ILLUSTRATIVE
   Answers shown in the mark scheme are examples, not the only acceptable wording. For
   free-text answers, definitions, explanations and derivations, decide whether the student's
   answer is SEMANTICALLY EQUIVALENT to the expected answer and award the marks if it is.

2. ANSWERS THAT MUST MATCH EXACTLY (no credit for "close"):
   - Binary values and truth-table cells
   - Multiple-choice letter selections (A, B, C, D ...)
   - Fixed numeric values, unless the mark scheme states a tolerance or range
   - Code / pseudocode: the LOGIC must be correct (syntax style may differ)

3. BLANK ANSWERS
   An answer marked "{BLANK_MARKER}" or missing entirely scores 0 with status "unanswered".
   This is different from a wrong attempt, which gets status "incorrect".

4. MULTI-STEP CALCULATIONS
   Accept abbreviated working as long as it is logically valid. Do NOT require the student
   to reproduce the example derivation step by step. Award method marks (M) for a valid
   method even when the final answer (A) is wrong.

5. Only award marks the mark scheme allows. Never exceed a question's allocation.

═══════════════════════════════════════════════════════════════════════════════
                              OUTPUT FORMAT
═══════════════════════════════════════════════════════════════════════════════

Respond with JSON ONLY (no markdown code fences):
{{
  "score": <total marks awarded, integer>,
  "maxScore": {total_marks},
  "feedback": "<2-3 sentence overall summary>",
  "breakdown": [
    {{
      "questionId": "1a",
      "points": 2,
      "maxPoints": 3,
      "status": "correct" | "partial" | "incorrect" | "unanswered",
      "feedback": "<what the mark scheme required, what the student wrote, why>",
      "deductions": [{{"reason": "<why a mark was lost>", "pointsLost": 1}}]
    }}
  ]
}}

Include EVERY question from the mark scheme in the breakdown, in mark-scheme order.
Put "questionId", "points", "maxPoints", "status" and "feedback" first in each item."""

"""Prompt templates for the five generation stages."""

from __future__ import annotations

_MARKDOWN_GUIDELINES = """### Markdown formatting
Format the text inside JSON string values with GitHub Flavored Markdown where it helps:
- Use ## or ### for headings, **bold** for key points, and - or 1. for lists.
- Use | tables where they make data clearer, and backticks for inline code.
Markdown must never compromise JSON validity. If there is a conflict, prioritize valid JSON."""

_JSON_RULES = """### JSON output rules (critical)
1. Output one complete, valid JSON value and nothing else.
2. Enclose every text value in double quotes and escape embedded double quotes as \\".
3. Escape line breaks inside string values as \\n.
4. Do not add trailing commas."""

_NO_ABSTRACTS = "No abstracts available. Base the analysis on the topic alone."


def step_by_step_prompt(topic: str) -> str:
    return f"""You are an expert academic research assistant who writes detailed, actionable thesis roadmaps.
Your highest priority is valid, parsable JSON output.

### Thesis topic
"{topic}"

{_MARKDOWN_GUIDELINES}

{_JSON_RULES}

### Instructions
1. Break the thesis process for this topic into a sequence of well-defined, actionable steps.
2. Make every step specific to the topic: name concrete data sources, methods, and milestones.
3. Where the scope or methodology preference is ambiguous, state the assumption inside the step details.

### Output format
A JSON array, for example:
[
  {{"stepNumber": 1, "title": "Define Research Problem", "details": "Clearly define the research question."}},
  {{"stepNumber": 2, "title": "Literature Review", "details": "Review existing literature using focused keywords."}}
]
"""


def rank_papers_prompt(topic: str, paper_details: str) -> str:
    return f"""You are an AI research assistant specialized in analyzing and ranking research papers.
Rank and summarize the most relevant papers for the following thesis topic.

### Thesis
"{topic}"

### Candidate papers (JSON)
{paper_details}

{_MARKDOWN_GUIDELINES}

{_JSON_RULES}

### Instructions
1. Rank the papers by direct relevance to the topic: similarity of research focus, methodological approach, and recency.
2. Summarize each paper in 50-100 words, highlighting the contributions, methods, and findings that inform the thesis.
3. If no candidate papers are provided, return an empty JSON array.

### Output format
[
  {{
    "rank": 1,
    "title": "Relevant Paper Title",
    "summary": "How the paper's contributions and methods relate to the thesis topic.",
    "authors": "Author A, Author B",
    "date": "2023-03-15",
    "link": "https://example.com/paper-link"
  }}
]
"""


def methodology_prompt(topic: str) -> str:
    return f"""You are an expert in research methodology. Create a tailored research methodology for the following thesis topic.

### Thesis topic
"{topic}"

{_MARKDOWN_GUIDELINES}

{_JSON_RULES}

### Instructions
1. Research approach: choose qualitative, quantitative, or mixed methods and justify the choice for this topic.
2. Data collection: suggest specific techniques, sample size, participant selection, and ethical considerations.
3. Data analysis: recommend statistical tools or qualitative methods, and explain how mixed data would be integrated.

### Output format
{{
  "researchApproach": {{
    "selectedApproach": "description of the selected approach",
    "justification": "justification based on the specific thesis topic"
  }},
  "dataCollectionMethods": {{
    "techniques": ["technique 1", "technique 2"],
    "participantSelection": "participant selection specific to the research focus",
    "ethicalConsiderations": "ethical considerations for the research"
  }},
  "dataAnalysisTechniques": {{
    "analysisMethods": ["method 1", "method 2"],
    "integration": "how qualitative and quantitative data will be integrated (if mixed methods)"
  }}
}}
"""


def research_gaps_prompt(abstracts: str, topic: str) -> str:
    return f"""You are an AI research assistant specializing in academic analysis.
Analyze the research paper abstracts below and identify research gaps, unexplored areas, and future directions.

### Thesis topic
"{topic}"

### Research paper abstracts
{abstracts or _NO_ABSTRACTS}

{_MARKDOWN_GUIDELINES}

{_JSON_RULES}

### Instructions
1. Common themes: recurring themes, theories, or methodologies relevant to the topic.
2. Unexplored areas: angles, data sources, or perspectives the research has not covered.
3. Open research questions directly related to the topic.
4. Concrete future research directions.

### Output format
{{
  "commonThemes": ["theme 1", "theme 2"],
  "unexploredAreas": ["unexplored area 1", "unexplored area 2"],
  "openResearchQuestions": ["research question 1", "research question 2"],
  "futureResearchDirections": ["future direction 1", "future direction 2"]
}}
"""


def pros_cons_prompt(abstracts: str, topic: str) -> str:
    return f"""You are an AI research assistant specializing in academic evaluation.
Analyze the research paper abstracts below and give an in-depth pros and cons analysis of researching this topic.

### Thesis topic
"{topic}"

### Research paper abstracts
{abstracts or _NO_ABSTRACTS}

{_MARKDOWN_GUIDELINES}

{_JSON_RULES}

### Instructions
1. Pros: the impact, relevance, and strengths of the field (data availability, growing interest).
2. Cons: challenges such as data access, methodological constraints, ethics, or limited literature.
3. Final considerations: summarize strengths and weaknesses and recommend how to overcome the challenges.

### Output format
{{
  "pros": ["key advantage 1", "key advantage 2"],
  "cons": ["challenge 1", "challenge 2"],
  "finalConsiderations": "Summary of the research area's strengths and final recommendations."
}}
"""

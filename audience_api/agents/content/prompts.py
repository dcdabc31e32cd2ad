"""Prompts for stage generation and single field regeneration.

Generation prompts are ChatPromptTemplates, so literal braces in JSON
examples are escaped as ``{{`` / ``}}``. Field prompts are plain strings.
"""

# ---------------------------------------------------------------------------
# Stage generation
# ---------------------------------------------------------------------------

GENERATION_SYSTEM_PROMPT = """You are an expert marketing strategist specializing in \
audience research, jobs-to-be-done and customer psychology.

You are producing the "{stage_title}" step of an audience research project: \
{stage_description}.

Every item you return MUST match this JSON schema:
{payload_schema}

You MUST return valid JSON in exactly this form:
{{
  "items": [
    {{ "ordinal": 0, "...": "fields from the schema" }}
  ]
}}

Rules:
- Build on the approved research you are given, never contradict it
- Be specific and avoid generic language
- Number items with "ordinal" starting at 0
- Respond with JSON only, no explanations"""

GENERATION_USER_PROMPT = """Project brief:
{project}

Scope:
{scope}

Approved research from previous steps:
{upstream}

{instructions}"""

# ---------------------------------------------------------------------------
# Field regeneration
# ---------------------------------------------------------------------------

# Stage → field type prefix of the field prompt keys
FIELD_TYPES = {
    "segments": "segment",
    "jobs": "job",
    "preferences": "preference",
    "difficulties": "difficulty",
    "triggers": "trigger",
    "pains": "pain",
    "pains-ranking": "pain",
}

FIELD_PROMPTS = {
    "pain_name": "Write a short, sharp name for a customer pain point, 3 to 6 words that state the problem.",
    "pain_description": (
        "Describe this customer pain point: its emotional impact, how often it hits and "
        "why today's solutions fall short. 2-3 sentences."
    ),
    "pain_trigger": "Describe the situation that makes this pain acute for the customer. 1-2 sentences.",
    "pain_example": "Give one realistic, concrete example of a customer living through this pain. 1-2 sentences.",
    "trigger_signal": "Write a short name for this buying signal, 3 to 5 words that say what pushes the purchase.",
    "trigger_description": (
        "Describe the situation, emotion or realization that makes the customer act on this signal. 2-3 sentences."
    ),
    "trigger_psychological_basis": (
        "Explain the psychological mechanism behind this signal, such as a bias or emotional driver. 1-2 sentences."
    ),
    "trigger_trigger_moment": "Describe the exact moment this signal fires and the customer is ready to buy. 1-2 sentences.",
    "trigger_messaging_angle": "Suggest a marketing angle that speaks to this moment. 1-2 sentences.",
    "job_job": "Write this job to be done as a short statement of what the customer is trying to get done.",
    "job_description": "Describe this job to be done: what the customer wants to accomplish and why. 2-3 sentences.",
    "job_why_matters": "Explain what is at stake for the customer in this job and what failing costs them. 1-2 sentences.",
    "job_how_helps": "Describe concretely how the product helps get this job done. 1-2 sentences.",
    "preference_description": "Describe this customer preference: what they prefer and why. 2-3 sentences.",
    "difficulty_description": "Describe this obstacle and how it slows the customer down. 2-3 sentences.",
    "segment_name": "Write a memorable name for this audience segment, 2 to 4 words capturing who they are.",
    "segment_description": (
        "Describe this audience segment: key traits, motivations and behaviors. 3-4 sentences."
    ),
    "segment_sociodemographics": (
        "Describe the sociodemographic profile of this segment: age, income, location, education. 2-3 sentences."
    ),
    "default": (
        "Rewrite this content keeping its meaning, making it more specific, compelling and actionable."
    ),
}

FIELD_SYSTEM_PROMPT = """You are an expert marketing strategist and copywriter specializing \
in audience research and customer psychology.

{context}

You write the content of a single field in an audience research tool.

Rules:
- Be specific and avoid generic language
- Use concrete details
- Write in a professional but accessible tone
- Do not include labels or field names in your response
- Respond with ONLY the content, no explanations"""

FIELD_USER_PROMPT = """{task}

{current}

Respond with only the regenerated content, nothing else."""

"""Default prompt templates and placeholder rendering.

Templates use ``{name}`` placeholders. Rendering replaces only the names it
is given, so literal JSON braces in a template survive untouched.
"""
from __future__ import annotations

import re

from jobpilot.models import Prompts

UNKNOWN_JOB = "UNKNOWN"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

JOB_SEARCH = """\
# TASK: EXTRACT JOB POSTINGS FROM A SEARCH RESULTS PAGE
You act as a smart parser for the job site '{platformName}'.
The user searched for:
- Positions: '{positions}'
- Location: '{location}'
- Result limit: {limit}

Find every posting card in the HTML below and extract for each one:
title, company, salary ("not specified" when missing), location, a short
description, the absolute url of the posting, and contacts (email, phone,
telegram) only when present. Leave companyRating at 0,
companyReviewSummary empty, responsibilities and requirements as [].
Skip cards without a title or url. Return at most {limit} postings as a
strict JSON array, no comments and no code fences. Return [] when the page
has no postings."""

RESUME_ADAPT = """\
# TASK: ADAPT THE RESUME TO A POSTING
You are a career consultant. Rework the base resume so that it stresses the
experience most relevant to '{jobTitle}' at '{jobCompany}'. Keep the
Markdown structure and be concise."""

COVER_LETTER = """\
# TASK: COVER LETTER
Write a polite, professional cover letter (3-4 paragraphs) for '{jobTitle}'
at '{jobCompany}', signed by {candidateName}. Highlight the skills that
match the posting. Return JSON with two keys: "subject" and "body"."""

HR_RESPONSE_ANALYSIS = """\
# TASK: CLASSIFY AN HR REPLY
Read the email and answer with ONE word describing its outcome:
- interview: an invitation to any interview stage
- offer: a job offer
- archive: a rejection
- tracking: a neutral reply, an acknowledgement or a request to wait
Answer with the single word only.

## Email:"""

SHORT_MESSAGE = """\
# TASK: SHORT MESSENGER MESSAGE
Write a short, polite message for WhatsApp/Telegram about '{jobTitle}' at
'{jobCompany}' on behalf of {candidateName}. Ask whether the position is
still open and where to send the resume."""

EMAIL_JOB_MATCH = """\
# TASK: MATCH AN EMAIL TO A POSTING
Compare the email with the list of postings. Return ONLY the id of the
posting the email is about. If you are not sure, return "UNKNOWN"."""

RANKING = """\
# TASK: RANK POSTINGS AGAINST A RESUME
For each posting below, explain in 1-3 sentences how well it fits the
candidate. Leave the analysis empty for postings you do not recommend.
Return a JSON object mapping each posting index (as a string) to
{"analysis": "..."}.

## Search preferences:
Positions: {positions}
Skills: {skills}
Minimum salary: {salary} {currency}
Location: {location} (remote: {remote})

## Candidate resume:
{resume}

## Postings:
{postings}"""

POSTING_STATUS = """\
# TASK: IS THIS POSTING STILL OPEN?
Below is the current text of the page for the posting '{jobTitle}' at
'{jobCompany}'. Answer OPEN if applications are still accepted, CLOSED if
the posting was removed, archived or filled. Answer with one word.

## Page text:
{page}"""

INTERVIEW_QUESTIONS = """\
Act as an experienced HR manager and career coach. Prepare the candidate for
an interview for '{jobTitle}' at '{jobCompany}'. List the 5-7 most likely
questions with a short tip for each based on the resume, then 2-3 smart
questions the candidate can ask. Answer in Markdown.

## Resume:
{resume}

## Posting:
{description}
Responsibilities: {responsibilities}"""

RESUME_READINESS = """\
You are a friendly career assistant. Check whether the resume text below
contains the desired positions, the minimum salary and the preferred
location. If all three are present answer with the single word READY.
Otherwise ask ONE short question about what is missing.

---
{resume}
---"""

PROFILE_FROM_CHAT = """\
Based on the whole conversation below (the original resume and the
follow-up answers) build the candidate's career profile. Return a JSON
object with the keys "resume" (a polished Markdown resume), "settings"
(positions, salary, currency RUB|USD|EUR, location, remote, employment[],
schedule[], skills, keywords, minCompanyRating, limit) and "profileName"
("<Full name> - <Main position> - <Salary> <Currency>").

---
{chat}
---"""


def render(template: str, **values: object) -> str:
    """Fill {name} placeholders in one pass; unknown names are left as is."""

    def fill(match: re.Match) -> str:
        name = match.group(1)
        return str(values[name]) if name in values else match.group(0)

    return _PLACEHOLDER.sub(fill, template)


def default_prompts() -> Prompts:
    return Prompts(
        job_search=JOB_SEARCH,
        resume_adapt=RESUME_ADAPT,
        cover_letter=COVER_LETTER,
        hr_response_analysis=HR_RESPONSE_ANALYSIS,
        short_message=SHORT_MESSAGE,
        email_job_match=EMAIL_JOB_MATCH,
    )

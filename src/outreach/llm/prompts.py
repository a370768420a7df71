"""Prompt templates for drafting outreach emails.

Templates use Python string placeholders ({variable_name}) for injection of
campaign context and, for follow-ups, the thread so far and the user's notes.
"""

DRAFT_SYSTEM_PROMPT = (
    "You are an expert cold outreach specialist who creates compelling, personalized emails."
)

COLD_EMAIL_PROMPT = """You are an expert cold outreach specialist. Create a compelling, \
personalized cold email based on the following information:

Campaign Goal: {campaign_goal}
Target Audience: {audience}

Requirements:
- Keep it under 150 words
- Make it personal and relevant to the audience
- Include a clear call-to-action
- Be professional but conversational
- Avoid generic templates
- Focus on value proposition

Generate a cold email that includes:
1. Subject line
2. Email body

Format your response as JSON with "subject" and "body" fields."""

FOLLOW_UP_PROMPT = """You are an expert cold outreach specialist. A reply has been received \
for a cold email. Your task is to draft a follow-up email.

Original Campaign Goal: {campaign_goal}
Original Target Audience: {audience}

Here is the email thread so far:
---
{thread_context}
---

Here are the user's notes on the reply:
---
{user_notes}
---

Requirements:
- Acknowledge the user's notes and the context of the reply.
- Align the follow-up with the original campaign goal.
- Keep it concise, professional, and under 150 words.
- Include a clear call-to-action.

Generate a follow-up email that includes:
1. Subject line (it should be a reply, so likely starting with "Re:")
2. Email body

Format your response as JSON with "subject" and "body" fields."""

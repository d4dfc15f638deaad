"""Processing instructions sent to the task extraction workflow.

The workflow reads these as a plain string input alongside the message
transcript, so any change here changes extraction behavior.
"""

PROCESSING_INSTRUCTIONS = """\
Analyze the messages{channel_clause} and:
1. Extract actionable tasks
2. Generate suggested replies for each message
3. Prioritize tasks based on urgency and importance
4. Identify tasks that need reprioritization
5. Categorize messages by type (request, FYI, urgent, meeting, question)

Additional Guidelines:
- Extract ONLY real, actionable tasks (ignore casual chat, greetings, reactions)
- Assign urgency based on:
  * Time pressure (today, ASAP, urgent, EOD)
  * Imperative language (must, need to, should)
  * Emojis indicating urgency
  * Explicit deadlines mentioned
  * Context (releases, blockers, approvals, production issues, security)
- Infer task owner from:
  * Direct mentions (@username)
  * Context ("I'll handle this", "I can take that")
  * Previous task assignments
  * Mark as "Unassigned" if unclear
- Identify and extract explicit deadlines when mentioned
- Every task must include source_message_ts: the Timestamp of the message it came from

Urgency Levels:
- high: Deadlines today, blockers, production issues, security issues, approvals needed
- medium: Important but flexible timing, team coordination, documentation requests
- low: Suggestions, future ideas, optional improvements, FYI items

Message Categories:
- urgent: Critical, time-sensitive, blocking work
- request: Someone asking for action or help
- question: Needs a response or clarification
- info: FYI, announcements, updates
- reminder: Upcoming deadlines or events
- meeting: Meeting-related content

Respond with JSON: {{"summary": str, "tasks": [{{"task", "owner", "urgency", "deadline", \
"source_message_ts", "context", "category"}}], "reprioritization_recommendations": [...]}}"""


def build_instructions(channel_name: str | None = None) -> str:
    """Return the instruction block, naming the channel when known."""
    channel_clause = f' from Slack channel "{channel_name}"' if channel_name else ""
    return PROCESSING_INSTRUCTIONS.format(channel_clause=channel_clause)

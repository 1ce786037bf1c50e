SUMMARY_SYSTEM_PROMPT = """You are an assistant that writes meeting summaries. \
Write clear, concise and well structured summaries in Markdown. \
Do not use emojis. Do not invent information that is not in the transcript."""

SUMMARY_USER_PROMPT = """Summarize the following meeting transcript using exactly \
this Markdown structure:

## Key Points
- Main topics discussed

## Action Items
- Tasks, assignments or follow-ups, with an owner when one is mentioned.
- If none were assigned, write "No explicit action items."

## Decisions Made
- Decisions or conclusions reached.
- If none were made, write "No explicit decisions."

## Participants
- Speakers identified in the transcript, or "Not explicitly identified."

## Next Steps
- Planned future actions.

---
Transcript:
{transcription}"""

CONSOLIDATION_PROMPT = """Below are several partial summaries of the same meeting. \
Merge them into a single summary with the same structure. Remove redundancy \
and combine the sections.

{summaries}"""

TRANSCRIBE_PROMPT = (
    "Please transcribe the following audio file. "
    "Provide ONLY the transcript, no intro or outro."
)

DIARIZATION_PROMPT = (
    "Please transcribe the audio with speaker identification. When you detect a "
    'change in speaker, indicate it with "Speaker 1:", "Speaker 2:", etc. If '
    "speaker names are mentioned, use those names instead. Provide ONLY the "
    "transcript, no intro or outro."
)

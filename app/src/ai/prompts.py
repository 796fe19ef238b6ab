"""
Prompt templates for the transcript-derived AI artifacts.
"""

_AD_NOTICE = (
    "Watch for advertisements and do not mix them with the episode's own "
    "content; mention any ads briefly at the very end."
)

SUMMARY_SYSTEM = (
    "You are an expert at analyzing podcast content. "
    "Generate concise, structured summaries. " + _AD_NOTICE
)

MINDMAP_SYSTEM = (
    "You are an expert at creating structured mindmaps from podcast content. "
    + _AD_NOTICE
)

CHAT_SYSTEM_DEFAULT = "You are a helpful AI assistant."


def summary_prompt(transcript: str) -> str:
    return (
        "Please analyze this podcast transcript and provide:\n"
        "1. A brief overview (2-3 sentences)\n"
        "2. Key topics discussed (bullet points)\n"
        "3. Main takeaways (3-5 points)\n\n"
        f"Transcript:\n{transcript}"
    )


def mindmap_prompt(transcript: str) -> str:
    return (
        "Create a hierarchical mindmap in markdown format for this podcast "
        "transcript. Use nested bullet points with indentation to show "
        "relationships. Focus on main topics, subtopics, and key details.\n\n"
        f"Transcript:\n{transcript}"
    )


def chat_system(transcript: str) -> str:
    if not transcript:
        return CHAT_SYSTEM_DEFAULT
    return (
        "You are a helpful AI assistant analyzing a podcast transcript. "
        f"{_AD_NOTICE} Here is the transcript:\n\n{transcript}\n\n"
        "Answer questions based on this transcript."
    )

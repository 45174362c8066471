"""Prompt text sent to the inference backends.

Wording here is configuration data: the orchestration code only relies on
the output shape it asks for (a summary paragraph followed by ``##``
sections, or a small JSON object for suggestions).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from ..models.notes import ChatMessage, ChunkRole, MeetingInfo, TranscriptChunk
from ..models.registry import Folder, Template

LANGUAGE_NAMES = {
    "en": "English", "es": "Spanish", "fr": "French", "de": "German",
    "it": "Italian", "pt": "Portuguese", "nl": "Dutch", "pl": "Polish",
    "ru": "Russian", "ja": "Japanese", "ko": "Korean", "zh": "Chinese",
    "ar": "Arabic", "hi": "Hindi", "tr": "Turkish", "vi": "Vietnamese",
    "th": "Thai", "id": "Indonesian", "ms": "Malay", "sv": "Swedish",
    "no": "Norwegian", "da": "Danish", "fi": "Finnish", "el": "Greek",
    "cs": "Czech", "ro": "Romanian", "hu": "Hungarian", "uk": "Ukrainian",
}

DEFAULT_SECTIONS = ("Summary", "Key Points", "Action Items", "Decisions")


def language_name(code: Optional[str]) -> str:
    return LANGUAGE_NAMES.get((code or "en").strip().lower(), "English")


def _msgs(system: str, user: str) -> List[ChatMessage]:
    return [ChatMessage(role="system", content=system), ChatMessage(role="user", content=user)]


# --------------------------- Chunk extraction ------------------------------

_ROLE_FOCUS = {
    ChunkRole.OPENING: (
        "This is the OPENING of the conversation. Capture the topics that are introduced, "
        "who is present and in what role, and the stated purpose or agenda. Also keep any "
        "substantive content, decisions or commitments already made here."
    ),
    ChunkRole.MIDDLE: (
        "This is a MIDDLE part of the conversation. Capture decisions, action items "
        "(with owner and deadline when stated), open questions and the ordinary "
        "discussion content."
    ),
    ChunkRole.CLOSING: (
        "This is the CLOSING part of the conversation and the most important one: meetings "
        "tend to end with commitments. Capture every action item, owner, deadline, risk, "
        "blocker and follow-up mentioned here. Do not under-represent anything raised late, "
        "even briefly; when in doubt, include it."
    ),
}


def chunk_extraction_messages(chunk: TranscriptChunk, kind: str = "transcript") -> List[ChatMessage]:
    focus = _ROLE_FOCUS[chunk.role]
    if chunk.total == 1:
        focus = _ROLE_FOCUS[ChunkRole.OPENING] + " " + _ROLE_FOCUS[ChunkRole.CLOSING]
    source = "a meeting transcript" if kind == "transcript" else "notes the user typed during a meeting"
    system = (
        f"You condense one part of {source} into dense factual bullet points.\n"
        f"{focus}\n"
        "Rules:\n"
        "- Only include what is explicitly stated; never infer.\n"
        "- Keep names, numbers, dates and deadlines exactly as given.\n"
        "- Remove filler, greetings and repetition.\n"
        "- Output bullet points only, no headers and no commentary."
    )
    user = f"Part {chunk.index + 1} of {chunk.total}:\n\n{chunk.text}"
    return _msgs(system, user)


# ------------------------------- Pass 1 ------------------------------------

def _template_block(template: Optional[Template], lang: str) -> str:
    if template and template.sections:
        lines = [f'TEMPLATE: "{template.name}"']
        if template.description:
            lines.append(f"Template purpose: {template.description}")
        lines.append("REQUIRED SECTIONS (use every one as a ## header, in this order, translated to " + lang + "):")
        for i, section in enumerate(template.sections, 1):
            lines.append(f'{i}. "{section.title}" - {section.instructions}')
        return "\n".join(lines)
    lines = [f"Use these sections as ## headers, in this order, translated to {lang}:"]
    lines.extend(f"{i}) {title}" for i, title in enumerate(DEFAULT_SECTIONS, 1))
    return "\n".join(lines)


def meeting_context(title: str, info: Optional[MeetingInfo], now: Optional[datetime] = None) -> str:
    if info is None:
        return ""
    now = now or datetime.now(timezone.utc)
    scheduled = "Unknown"
    status = "COMPLETED"
    if info.start_time:
        try:
            start = datetime.fromisoformat(info.start_time.replace("Z", "+00:00"))
        except ValueError:
            start = None
        if start is not None:
            if start.tzinfo is None:
                start = start.replace(tzinfo=timezone.utc)
            scheduled = start.isoformat()
            if start > now:
                status = "UPCOMING (not yet started)"
    return (
        "Meeting context:\n"
        f"- Title: {info.title or title}\n"
        f"- Scheduled: {scheduled}\n"
        f"- Status: {status}\n"
        f"- Provider: {info.provider or 'Unknown'}"
    )


def pass1_messages(
    transcript: str,
    notes_block: str,
    title: str,
    meeting_info: Optional[MeetingInfo],
    output_language: str,
    template: Optional[Template],
    chunked: bool,
) -> List[ChatMessage]:
    lang = language_name(output_language)
    system = (
        "You are an expert executive assistant. You distill messy, non-linear conversations into "
        "clear, organized notes without adding anything that was not said.\n\n"
        f"OUTPUT LANGUAGE: write everything in {lang}, including section headers.\n\n"
        f"{_template_block(template, lang)}\n\n"
        "ORGANIZATION:\n"
        "- Organize by priority and topic. Never mirror the chronological flow of the conversation.\n"
        "- Each topic appears exactly once. When something was discussed at different times, collapse it "
        "into a single entry using the strongest phrasing; if owners or deadlines conflict, keep the "
        "earliest stated one.\n"
        "- Put explicitly stated urgency, risks and blockers near the top of their section.\n"
        "- Review the end of the material carefully so late commitments are not missed.\n\n"
        "ACCURACY:\n"
        "- Only include information explicitly present. Do not invent action items or decisions.\n"
        "- Mark unclear names or terms as [unclear]. If a section would be empty, write \"No items\".\n\n"
        "FORMAT:\n"
        "- Start with a 2-3 sentence summary paragraph with no header.\n"
        "- Then the ## sections, with **bold** for key terms and names and - bullets.\n"
        "- No title line, no commentary about the format."
    )
    source_label = (
        "TRANSCRIPT (condensed part by part, in order; parts overlap slightly):"
        if chunked
        else "TRANSCRIPT:"
    )
    parts = [f"Conversation: {title}"]
    context = meeting_context(title, meeting_info)
    if context:
        parts.append(context)
    parts.append(f"USER'S PERSONAL NOTES (typed by the user, not spoken):\n{notes_block}")
    parts.append(f"{source_label}\n{transcript}")
    parts.append("Write the notes now, starting with the summary paragraph.")
    return _msgs(system, "\n\n".join(parts))


def deferred_notes_placeholder(length: int) -> str:
    return (
        f"(The user took {length} characters of notes. They will be merged in a later step; "
        "do not guess their contents.)"
    )


# ------------------------------- Pass 2 ------------------------------------

def pass2_messages(pass1_text: str, user_notes: str, output_language: str) -> List[ChatMessage]:
    lang = language_name(output_language)
    system = (
        "You merge a user's personal meeting notes into existing structured notes.\n"
        "Rules:\n"
        "- Keep the existing structure: the summary paragraph and every ## section, in the same order.\n"
        "- Place each user note at the topically relevant point inside the existing sections. "
        "Do not append the notes as a separate block at the end.\n"
        "- User notes are high priority: include all of them, fixing typos and abbreviations.\n"
        "- Do not drop or shorten existing content.\n"
        f"- Write in {lang}. Output the complete merged notes only."
    )
    user = f"EXISTING NOTES:\n{pass1_text}\n\nUSER'S PERSONAL NOTES:\n{user_notes}"
    return _msgs(system, user)


# ------------------------------ Q&A / title --------------------------------

def ask_messages(question: str, transcript: str, notes: str, title: str) -> List[ChatMessage]:
    system = (
        "You answer questions about a meeting using its transcript and notes.\n"
        "Use markdown: **bold** for key terms, - bullets for lists, > quotes for direct quotes.\n"
        "Be concise. If the answer is not in the material, say so."
    )
    user = (
        f"Meeting: {title}\n\n"
        f"TRANSCRIPT:\n{transcript or '(No transcript available)'}\n\n"
        f"NOTES:\n{notes or '(No notes taken)'}\n\n"
        f"---\n\nQUESTION: {question}"
    )
    return _msgs(system, user)


def title_messages(transcript_text: str, output_language: str) -> List[ChatMessage]:
    lang = language_name(output_language)
    system = (
        "Generate a concise, descriptive meeting title (3-7 words) capturing the main topic.\n"
        f"Write the title in {lang}. Return only the title text, without quotes or explanation."
    )
    return _msgs(system, f"Conversation:\n\n{transcript_text[:2000]}")


# ------------------------------ Suggestions --------------------------------

_CHOICE_RULES = (
    'Output ONLY JSON: {"number": N, "confidence": "high|medium|low", "reason": "brief explanation"}\n'
    "N is the option number from the list, or 0 if nothing fits.\n"
    '- "high": clearly matches (70%+ sure)\n'
    '- "medium": somewhat matches (50-70% sure)\n'
    '- "low": weak match (30-50% sure)\n'
    "- Use 0 if confidence would be below low."
)


def folder_messages(content: str, title: str, folders: Sequence[Folder]) -> List[ChatMessage]:
    listing = "\n".join(
        f'{i}. "{f.name}" - {f.description.strip() or "(match based on folder name)"}'
        for i, f in enumerate(folders, 1)
    )
    system = "You classify meeting notes into the user's folders, matching on folder name and description.\n" + _CHOICE_RULES
    user = (
        f"Meeting title: {title}\n\n"
        f"Meeting content:\n{content[:1500]}\n\n"
        f"Available folders:\n{listing}\n\n"
        "Which folder number fits best? JSON only."
    )
    return _msgs(system, user)


def template_messages(
    title: str, raw_notes: str, transcript_preview: str, templates: Sequence[Template]
) -> List[ChatMessage]:
    listing = "\n".join(
        f'{i}. "{t.name}" - {t.description or "General meeting notes"}' for i, t in enumerate(templates, 1)
    )
    system = "You pick the note template that will produce the best notes for a meeting.\n" + _CHOICE_RULES
    user = (
        f"Meeting: {title}\n\n"
        f"User notes:\n{raw_notes[:500] or '(none)'}\n\n"
        f"Transcript excerpt:\n{transcript_preview[:1500] or '(none)'}\n\n"
        f"Available templates:\n{listing}\n\n"
        "Which template number fits best? JSON only."
    )
    return _msgs(system, user)

"""Built-in note templates.

Read-only: callers get the shared model instances and must not modify them.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from ..models.registry import Template, TemplateSection

DEFAULT_TEMPLATE_ID = "general"


def _template(id: str, name: str, description: str, sections: List[Tuple[str, str]]) -> Template:
    return Template(
        id=id,
        name=name,
        description=description,
        sections=[
            TemplateSection(id=f"s{i}", title=title, instructions=instructions)
            for i, (title, instructions) in enumerate(sections, 1)
        ],
    )


_BUILTIN: Tuple[Template, ...] = (
    _template(
        "general",
        "General Meeting",
        "Standard meeting notes with summary, key points, and action items.",
        [
            ("Summary", "Provide a brief 2-3 sentence summary of the meeting"),
            ("Key Points", "List the main discussion points and important information shared"),
            ("Action Items", "List any tasks, assignments, or follow-ups with owners if mentioned"),
            ("Decisions", "Document any decisions that were made during the meeting"),
        ],
    ),
    _template(
        "1-on-1",
        "1 on 1",
        "A 1:1 with someone on my team. Concise, actionable notes focused on immediate priorities, "
        "progress, challenges and personal feedback.",
        [
            ("Top of mind", "The most pressing issues or priorities that need immediate attention."),
            ("Updates and wins", "Recent achievements and progress. What is going well?"),
            ("Challenges and blockers", "Obstacles that are slowing progress."),
            ("Mutual feedback", "Feedback given in either direction, including anything I should change."),
            ("Next Milestone", "Action items and next steps: who is doing what by when."),
        ],
    ),
    _template(
        "advisory",
        "Advisory",
        "I met with an advisor or mentor to get guidance on strategic decisions, challenges, or opportunities.",
        [
            ("Context shared", "What background or situation did I share with the advisor?"),
            ("Key advice", "What were the main recommendations or insights they provided?"),
            ("Questions raised", "What questions did they ask that made me think differently?"),
            ("Resources or connections", "Did they offer any introductions, resources, or references?"),
            ("Action items", "What specific actions should I take based on this advice?"),
        ],
    ),
    _template(
        "board-meeting",
        "Board Meeting",
        "I attended or presented at a board meeting to provide updates and receive strategic guidance.",
        [
            ("Company updates", "Key updates shared about company performance, metrics, and milestones."),
            ("Strategic discussions", "Strategic topics discussed, including debates or different viewpoints."),
            ("Board feedback", "What feedback or concerns did board members raise?"),
            ("Decisions made", "Document any formal decisions or approvals."),
            ("Action items", "List follow-up items with owners and deadlines."),
        ],
    ),
    _template(
        "investor-current",
        "Investor: Current",
        "I met with a current investor to provide updates on company progress and discuss any support needed.",
        [
            ("Updates shared", "What key updates did I share about the company, product, or metrics?"),
            ("Investor questions", "What questions or concerns did the investor raise?"),
            ("Support requested", "What help did I ask for? Introductions, advice, resources?"),
            ("Investor offers", "What support or connections did they offer to provide?"),
            ("Next steps", "Agreed follow-ups and timeline for next check-in."),
        ],
    ),
    _template(
        "customer-discovery",
        "Customer: Discovery",
        "A call with a potential customer to understand their needs, concerns and goals. Pull out specific "
        "figures and helpful quotes. Focus only on what they say.",
        [
            ("Their background", "Key details about the client's business, industry and role."),
            ("Pain points and needs", "The specific challenges and needs they express."),
            ("Questions or concerns", "Questions or concerns they raise that need a follow-up."),
            ("Budget and timeline", "How much do they have to spend? Any key dates?"),
            ("Next Steps", "Follow-up actions agreed to keep the momentum going."),
        ],
    ),
    _template(
        "standup",
        "Stand-Up",
        "A daily standup. Document each participant's accomplishments, current focus and blockers. "
        "Keep these notes short and to-the-point.",
        [
            ("Announcements", "Note-worthy points from the small-talk or announcements at the beginning of the call."),
            ("Updates", "Per person: what was achieved yesterday, what they are working on today, and any blockers."),
            ("Sidebar", "Further discussions after the main updates, including decisions made."),
            ("Action Items", "Next steps with owners, so responsibilities are clear."),
        ],
    ),
)

_BY_ID: Dict[str, Template] = {t.id: t for t in _BUILTIN}


def list_templates() -> List[Template]:
    return list(_BUILTIN)


def get_template(template_id: Optional[str]) -> Optional[Template]:
    if not template_id:
        return None
    return _BY_ID.get(template_id.strip())


def default_template() -> Template:
    return _BY_ID[DEFAULT_TEMPLATE_ID]

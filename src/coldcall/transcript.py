from coldcall.console import BRIGHT, CYAN, GREEN, RED, color, score_color
from coldcall.personas import CATEGORIES
from coldcall.states import Role

CATEGORY_LABELS = {
    "opening_preparation": "Opening & Prep",
    "objection_handling": "Objection Handling",
    "peer_discourse": "Peer Discourse",
    "business_value": "Business Value",
    "professionalism": "Professionalism",
}


def to_plain_text(messages: list, assistant_label: str = "Joey") -> str:
    """Convert a message log to plain text.

    Assistant lines are prefixed with the persona label, counterpart lines with "Caller:".
    """
    if not messages:
        return ""

    lines = []
    for message in messages:
        if message.role == Role.ASSISTANT:
            lines.append(f"{assistant_label}: {message.content}")
        elif message.role == Role.USER:
            lines.append(f"Caller: {message.content}")
    return "\n".join(lines)


def to_json_array(messages: list) -> list[dict]:
    if not messages:
        return []
    return [{"role": m.role.value, "content": m.content} for m in messages]


def _fmt_score(value) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return f"{value:.1f}/10"
    return "N/A"


def format_evaluation(evaluation: dict, colored: bool = True) -> list[str]:
    """Render an SDR evaluation (structured analysis) as display lines."""
    def paint(text, code):
        return color(text, code) if colored else text

    lines = []
    score = evaluation.get("overall_score")
    if isinstance(score, (int, float)) and not isinstance(score, bool):
        lines.append(f"Overall Score: {paint(_fmt_score(score), score_color(score))}")
    else:
        lines.append("Overall Score: N/A")
    if evaluation.get("overall_comment"):
        lines.append(f"  {evaluation['overall_comment']}")

    qualified = evaluation.get("meeting_qualified")
    lines.append(
        "Meeting Qualified: "
        + (paint("YES ✅", GREEN) if qualified else paint("NO ❌", RED))
    )
    if "weekly_contest_eligible" in evaluation:
        lines.append(f"Weekly Contest: {'YES' if evaluation['weekly_contest_eligible'] else 'NO'}")

    category_scores = evaluation.get("category_scores")
    if isinstance(category_scores, dict) and category_scores:
        lines.append(paint("Category Scores:", CYAN))
        for name in CATEGORIES:
            if name in category_scores:
                label = CATEGORY_LABELS[name] + ":"
                lines.append(f"  {label:<20}{_fmt_score(category_scores[name])}")

    if evaluation.get("pushback_quality"):
        lines.append(f"Pushback Quality: {evaluation['pushback_quality']}")

    objections = evaluation.get("objections_deployed") or []
    if objections:
        lines.append(paint("Objections Deployed:", CYAN))
        lines.extend(f"  • {o}" for o in objections)

    examples = evaluation.get("quoted_examples") or []
    if examples:
        lines.append(paint("Quoted Examples:", CYAN))
        for example in examples:
            if not isinstance(example, dict):
                continue
            lines.append(f"  [{example.get('category', 'overall')}] \"{example.get('quote', '')}\"")
            if example.get("improvement"):
                lines.append(f"    → {example['improvement']}")

    if evaluation.get("coaching_provided"):
        lines.append(paint("Coaching:", BRIGHT))
        lines.append(f"  {evaluation['coaching_provided']}")
    return lines

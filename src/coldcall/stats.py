"""Dashboard aggregates computed from registry snapshots."""

from typing import Optional


def format_duration(seconds: Optional[float]) -> str:
    if seconds is None:
        return "N/A"
    seconds = int(seconds)
    return f"{seconds // 60}:{seconds % 60:02d}"


def summarize(calls: list) -> dict:
    active = completed = meetings = 0
    total_duration = 0.0
    scores = []
    for call in calls:
        if not call.is_ended:
            active += 1
            continue
        completed += 1
        if call.analysis is not None:
            if call.analysis.overall_score is not None:
                scores.append(call.analysis.overall_score)
            if call.analysis.meeting_qualified:
                meetings += 1
        total_duration += call.duration_seconds or 0.0

    return {
        "totalCalls": len(calls),
        "activeCalls": active,
        "completedCalls": completed,
        "scoredCalls": len(scores),
        "averageScore": round(sum(scores) / len(scores), 2) if scores else None,
        "meetingsEarned": meetings,
        "successRate": round(meetings / completed * 100) if completed else 0,
        "averageDurationSeconds": round(total_duration / completed, 1) if completed else 0.0,
    }


def leaderboard(calls: list) -> list[dict]:
    """Rank counterpart numbers by their best structured score."""
    by_number: dict[str, dict] = {}
    for call in calls:
        if not call.is_ended or call.analysis is None:
            continue
        score = (call.analysis.structured_data or {}).get("overall_score")
        if not isinstance(score, (int, float)) or isinstance(score, bool):
            continue
        entry = by_number.setdefault(
            call.customer_number,
            {"scores": [], "meetings": 0, "last_call": 0.0},
        )
        entry["scores"].append(float(score))
        if call.analysis.meeting_qualified:
            entry["meetings"] += 1
        entry["last_call"] = max(entry["last_call"], call.ended_at or call.started_at)

    rows = [
        {
            "customerNumber": number,
            "bestScore": max(data["scores"]),
            "avgScore": round(sum(data["scores"]) / len(data["scores"]), 2),
            "totalCalls": len(data["scores"]),
            "meetingsEarned": data["meetings"],
            "lastCall": int(data["last_call"] * 1000),
        }
        for number, data in by_number.items()
    ]
    rows.sort(key=lambda r: r["bestScore"], reverse=True)
    return rows
